"""
Authorization policy.

Owner-or-admin style checks live here so routers and services ask one
question ("may this user do X?") instead of repeating role conditionals.
"""

from . import models
from .exceptions import PermissionDeniedError


def is_admin(user: models.User | None) -> bool:
    return user is not None and user.role == models.UserRole.ADMIN


def can_modify_reservation(user: models.User, reservation: models.Reservation) -> bool:
    return is_admin(user) or reservation.user_id == user.id


def can_edit_article(user: models.User, article: models.ContentArticle) -> bool:
    return is_admin(user) or article.author_id == user.id


def can_view_user(user: models.User, target_user_id: int) -> bool:
    return is_admin(user) or user.id == target_user_id


can_edit_user = can_view_user


def ensure(allowed: bool, message: str = "Not enough permissions") -> None:
    if not allowed:
        raise PermissionDeniedError(message)
