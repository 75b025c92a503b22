"""
Permission Service - capability checks for actors

WHY: Services receive the acting user explicitly; routes and the CLI ask
this module whether that user may perform an action. Role -> permission
mapping comes from permissions.DEFAULT_ROLE_PERMISSIONS.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, PermissionDeniedError
from ..models import User
from ..permissions import DEFAULT_ROLE_PERMISSIONS, validate_permission_code


def get_actor(user_id) -> User:
    """Load an active user by id (raises NotFoundError for unknown or inactive users)."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("User", user_id)
    return user


def get_user_permissions(user: User) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(user.role, ()))


def actor_can(user: User, permission_code: str) -> bool:
    """
    Check if user has a specific permission.

    Inactive users have no permissions. Unknown codes are a programming
    error, not a denial.
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")
    if not user.is_active:
        return False
    return permission_code in get_user_permissions(user)


def require_permission(user: User, permission_code: str) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged at WARNING (grants are not logged).
    """
    if not actor_can(user, permission_code):
        current_app.logger.warning(
            "Permission denied: user=%s role=%s permission=%s", user.id, user.role, permission_code
        )
        raise PermissionDeniedError(user.id, permission_code)
