from typing import Generator, Optional

from fastapi import Depends, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .database import SessionLocal
from .exceptions import AuthenticationError, InvalidParamsError, PermissionDeniedError
from .pagination import MAX_PAGE_SIZE, Pagination
from .security import decode_access_token
from .storage import LocalFileStorage


# ----- DB -----
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----- Auth -----
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{get_settings().api_prefix}/auth/login", auto_error=False
)


def _user_from_token(db: Session, token: str) -> models.User:
    payload = decode_access_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    user = db.get(models.User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    return user


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    if not token:
        raise AuthenticationError("Not authenticated")
    return _user_from_token(db, token)


def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if not token:
        return None
    return _user_from_token(db, token)


def require_roles(*allowed_roles: models.UserRole):
    """
    Usage: current_user: models.User = Depends(require_roles(models.UserRole.ADMIN))
    """
    def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed_roles:
            raise PermissionDeniedError()
        return current_user

    return role_checker


require_admin = require_roles(models.UserRole.ADMIN)


# ----- Pagination -----
def get_pagination(
    page: int = Query(1),
    page_size: int = Query(20, alias="pageSize"),
) -> Pagination:
    if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise InvalidParamsError(
            "Invalid pagination parameters",
            details={"page": page, "pageSize": page_size, "maxPageSize": MAX_PAGE_SIZE},
        )
    return Pagination(page=page, page_size=page_size)


# ----- Files -----
def get_storage() -> LocalFileStorage:
    return LocalFileStorage(get_settings().upload_dir)
