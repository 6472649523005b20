"""User accounts: CRUD, soft delete, password resets and UI preferences."""

import structlog
from sqlalchemy.orm import Session

from .. import models, policies, schemas
from ..exceptions import AppError, ConflictError, NotFoundError, ValidationError
from ..pagination import Pagination, paginate
from ..security import get_password_hash, verify_password
from . import auth as auth_service

logger = structlog.get_logger(__name__)


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def list_users(db: Session, pagination: Pagination, include_inactive: bool = False):
    query = db.query(models.User)
    if not include_inactive:
        query = query.filter(models.User.is_active.is_(True))
    return paginate(query.order_by(models.User.username), pagination)


def create_user(db: Session, user_in: schemas.UserCreate) -> models.User:
    existing = (
        db.query(models.User)
        .filter((models.User.username == user_in.username) | (models.User.email == user_in.email))
        .first()
    )
    if existing:
        raise ConflictError("Username or email already exists", code="DUPLICATE_USER")

    user = models.User(
        username=user_in.username,
        hashed_password=get_password_hash(user_in.password),
        display_name=user_in.display_name,
        email=user_in.email,
        role=user_in.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_created", user_id=user.id, role=user.role.value)
    return user


def update_user(
    db: Session, user_id: int, user_update: schemas.UserUpdate, actor: models.User
) -> models.User:
    """Update profile fields. Role and active flag are admin-only; the
    username never changes."""
    policies.ensure(policies.can_edit_user(actor, user_id), "Not allowed to update this user")
    user = get_user(db, user_id)

    data = user_update.model_dump(exclude_unset=True)
    if ("role" in data or "is_active" in data) and not policies.is_admin(actor):
        policies.ensure(False, "Only administrators can change role or active status")
    if data.get("is_active") is False and user.id == actor.id:
        raise ValidationError("Administrators cannot deactivate their own account", field="isActive")

    if data.get("email") and data["email"] != user.email:
        taken = (
            db.query(models.User)
            .filter(models.User.email == data["email"], models.User.id != user.id)
            .first()
        )
        if taken:
            raise ConflictError("Email already exists", code="DUPLICATE_EMAIL")

    for field, value in data.items():
        if value is None:
            continue
        setattr(user, field, value)

    if data.get("is_active") is False:
        auth_service.revoke_all_user_tokens(db, user.id)

    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user_id: int, actor: models.User) -> None:
    """Soft delete: the row stays for history, the account can no longer log in."""
    user = get_user(db, user_id)
    if user.id == actor.id:
        raise ValidationError("Administrators cannot deactivate their own account", field="id")

    user.is_active = False
    auth_service.revoke_all_user_tokens(db, user.id)
    db.commit()
    logger.info("user_deactivated", user_id=user.id, actor_id=actor.id)


def reset_password(
    db: Session,
    user_id: int,
    new_password: str,
    actor: models.User,
    current_password: str | None = None,
) -> None:
    """Admins reset anyone's password; users must prove the current one."""
    user = get_user(db, user_id)
    policies.ensure(policies.can_edit_user(actor, user_id), "Not allowed to reset this password")

    if not policies.is_admin(actor):
        if not current_password:
            raise AppError("Current password is required", code="CURRENT_PASSWORD_REQUIRED")
        if not verify_password(current_password, user.hashed_password):
            raise AppError("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")

    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info("password_reset", user_id=user.id, actor_id=actor.id)


def update_preferences(
    db: Session, user: models.User, prefs: schemas.PreferencesUpdate
) -> models.User:
    if prefs.theme_preference is not None:
        user.theme_preference = prefs.theme_preference
    if prefs.sidebar_collapsed is not None:
        user.sidebar_collapsed = prefs.sidebar_collapsed
    db.commit()
    db.refresh(user)
    return user


def ensure_bootstrap_admin(db: Session, username: str, password: str, email: str) -> models.User:
    """Create the first administrator if an account with that name is missing."""
    user = db.query(models.User).filter(models.User.username == username).first()
    if user is not None:
        return user

    user = models.User(
        username=username,
        hashed_password=get_password_hash(password),
        display_name="Administrator",
        email=email,
        role=models.UserRole.ADMIN,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("bootstrap_admin_created", user_id=user.id, username=username)
    return user
