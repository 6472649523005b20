"""Login, refresh-token rotation and logout."""

from dataclasses import dataclass
from datetime import timedelta

import structlog
from sqlalchemy.orm import Session

from .. import models
from ..config import get_settings
from ..exceptions import AuthenticationError
from ..security import (
    create_access_token,
    generate_refresh_token,
    hash_refresh_token,
    verify_password,
)
from ..timeutils import utcnow

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
INVALID_REFRESH_TOKEN = "Refresh token is invalid or expired"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    user: models.User


def authenticate_user(db: Session, username: str, password: str) -> models.User | None:
    """Return the active user matching the credentials, or ``None``."""
    user = (
        db.query(models.User)
        .filter(models.User.username == username, models.User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def _revoke_active_tokens(db: Session, user_id: int) -> int:
    now = utcnow()
    tokens = (
        db.query(models.RefreshToken)
        .filter(models.RefreshToken.user_id == user_id, models.RefreshToken.revoked_at.is_(None))
        .all()
    )
    for token in tokens:
        token.revoked_at = now
    return len(tokens)


def _issue_refresh_token(db: Session, user: models.User) -> tuple[str, models.RefreshToken]:
    """Create a refresh token row; any other live token of the user is revoked."""
    settings = get_settings()
    _revoke_active_tokens(db, user.id)

    raw_token = generate_refresh_token()
    now = utcnow()
    row = models.RefreshToken(
        user_id=user.id,
        token_hash=hash_refresh_token(raw_token),
        created_at=now,
        expires_at=now + timedelta(days=settings.refresh_token_expire_days),
    )
    db.add(row)
    db.flush()
    return raw_token, row


def login(db: Session, username: str, password: str) -> TokenPair:
    user = authenticate_user(db, username, password)
    if user is None:
        # same message whether the user is unknown, inactive or mistyped
        logger.info("login_failed", username=username)
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.last_login_at = utcnow()
    raw_refresh, _ = _issue_refresh_token(db, user)
    db.commit()
    db.refresh(user)

    logger.info("login_succeeded", user_id=user.id)
    return TokenPair(create_access_token(user), raw_refresh, user)


def refresh(db: Session, raw_token: str | None) -> TokenPair:
    """Rotate a refresh token: revoke it and hand out a fresh pair.

    A token that was already rotated is a sign of theft; every live token
    of its owner is revoked so the attacker's copy dies too.
    """
    if not raw_token:
        raise AuthenticationError("Refresh token missing")

    token = (
        db.query(models.RefreshToken)
        .filter(models.RefreshToken.token_hash == hash_refresh_token(raw_token))
        .first()
    )
    if token is None:
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    if token.revoked_at is not None:
        if token.replaced_by_id is not None:
            revoked = _revoke_active_tokens(db, token.user_id)
            db.commit()
            logger.warning(
                "refresh_token_reuse_detected",
                user_id=token.user_id,
                token_id=token.id,
                revoked_count=revoked,
            )
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    if token.expires_at <= utcnow() or not token.user.is_active:
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    user = token.user
    raw_new, new_row = _issue_refresh_token(db, user)
    token.revoked_at = token.revoked_at or utcnow()
    token.replaced_by_id = new_row.id
    db.commit()

    logger.info("refresh_token_rotated", user_id=user.id, old_token_id=token.id, new_token_id=new_row.id)
    return TokenPair(create_access_token(user), raw_new, user)


def logout(db: Session, raw_token: str | None) -> None:
    """Revoke the refresh token if it is still live. Safe to repeat."""
    if not raw_token:
        return
    token = (
        db.query(models.RefreshToken)
        .filter(models.RefreshToken.token_hash == hash_refresh_token(raw_token))
        .first()
    )
    if token is not None and token.revoked_at is None:
        token.revoked_at = utcnow()
        db.commit()
        logger.info("refresh_token_revoked", user_id=token.user_id, token_id=token.id)


def revoke_all_user_tokens(db: Session, user_id: int) -> int:
    count = _revoke_active_tokens(db, user_id)
    logger.info("all_refresh_tokens_revoked", user_id=user_id, revoked_count=count)
    return count
