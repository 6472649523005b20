from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import get_settings
from ..deps import get_current_user, get_db
from ..rate_limit import limiter
from ..services import auth as auth_service

settings = get_settings()

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE_PATH = f"{settings.api_prefix}/auth"


def _set_refresh_cookie(response: Response, raw_token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=raw_token,
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="strict",
        path=REFRESH_COOKIE_PATH,
    )


def _token_payload(pair: auth_service.TokenPair) -> dict:
    return {
        "access_token": pair.access_token,
        "token_type": "Bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
        "user": pair.user,
    }


@router.post("/login", response_model=schemas.LoginResponse)
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request,
    response: Response,
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Authenticate a user and start a session.

    Returns a short-lived JWT access token plus the user's profile, and
    sets the long-lived refresh token in an HTTP-only cookie.

    Parameters
    ----------
    credentials : LoginRequest
        Username and plain-text password.
    db : Session
        Database session.

    Raises
    ------
    AuthenticationError
        - 401 if the credentials are wrong or the account is inactive.
          The message never says which.
    """
    pair = auth_service.login(db, credentials.username, credentials.password)
    _set_refresh_cookie(response, pair.refresh_token)
    return _token_payload(pair)


@router.post("/refresh", response_model=schemas.LoginResponse)
def refresh(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.refresh_cookie_name),
    db: Session = Depends(get_db),
):
    """
    Exchange the refresh-token cookie for a new access/refresh pair.

    The presented token is revoked and chained to its replacement.

    Raises
    ------
    AuthenticationError
        - 401 if the cookie is missing, expired, revoked or belongs to an
          inactive user.
    """
    pair = auth_service.refresh(db, refresh_token)
    _set_refresh_cookie(response, pair.refresh_token)
    return _token_payload(pair)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.refresh_cookie_name),
    db: Session = Depends(get_db),
):
    """
    Revoke the refresh-token cookie and clear it. Safe to call repeatedly.
    """
    auth_service.logout(db, refresh_token)
    response.delete_cookie(
        settings.refresh_cookie_name,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="strict",
    )
    return {"message": "Logged out"}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """
    Return the profile of the authenticated user.
    """
    return current_user
