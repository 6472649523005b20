from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, policies, schemas
from ..deps import get_current_user, get_db, get_pagination, require_admin
from ..pagination import Pagination, page_payload
from ..services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=schemas.Page[schemas.UserOut])
def list_users(
    include_inactive: bool = Query(False, alias="includeInactive"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """
    List user accounts (admin only), ordered by username.

    Deactivated accounts are left out unless ``includeInactive`` is set.
    """
    items, total = user_service.list_users(db, pagination, include_inactive)
    return page_payload(items, total, pagination)


@router.post("", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: schemas.UserCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """
    Create a new user account (admin only).

    Parameters
    ----------
    user_in : UserCreate
        Username, password, display name, email and role.
    db : Session
        Database session.

    Raises
    ------
    ConflictError
        - 409 ``DUPLICATE_USER`` if the username or email already exists.
    """
    return user_service.create_user(db, user_in)


@router.put("/me/preferences", response_model=schemas.UserOut)
def update_my_preferences(
    prefs: schemas.PreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update the caller's UI preferences (theme, sidebar state).
    """
    return user_service.update_preferences(db, current_user, prefs)


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Get a single user by ID.

    - Regular users can only read their own profile.
    - Admins can read any profile.

    Raises
    ------
    PermissionDeniedError
        - 403 if a regular user asks for somebody else.
    NotFoundError
        - 404 if the user does not exist.
    """
    policies.ensure(policies.can_view_user(current_user, user_id), "Not allowed to view this user")
    return user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=schemas.UserOut)
def update_user(
    user_id: int,
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update a user's profile.

    Users may change their own display name and email. Role and active
    status can only be changed by an admin.

    Raises
    ------
    PermissionDeniedError
        - 403 if the caller is neither the user nor an admin.
    ConflictError
        - 409 ``DUPLICATE_EMAIL`` if the email belongs to another account.
    """
    return user_service.update_user(db, user_id, user_update, current_user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """
    Deactivate a user (soft delete, admin only).

    The row is kept; the account can no longer log in and its refresh
    tokens are revoked.
    """
    user_service.deactivate_user(db, user_id, admin)


@router.post("/{user_id}/reset-password", response_model=schemas.MessageResponse)
def reset_password(
    user_id: int,
    body: schemas.PasswordReset,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Set a new password.

    Admins can reset any account directly. Users resetting their own
    password must also send ``currentPassword``.

    Raises
    ------
    AppError
        - 400 ``CURRENT_PASSWORD_REQUIRED`` / ``INVALID_CURRENT_PASSWORD``.
    PermissionDeniedError
        - 403 if a regular user targets another account.
    """
    user_service.reset_password(
        db, user_id, body.new_password, current_user, current_password=body.current_password
    )
    return {"message": "Password updated"}
