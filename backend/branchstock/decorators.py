# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import NotFoundError, PermissionDeniedError
from .services import permission_service

ACTOR_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_actor(f):
    """
    Resolve the acting user from the X-User-Id header.

    Authentication happens upstream (gateway/reverse proxy); this only maps
    the already-authenticated id onto an active User.

    Sets:
    - g.current_user: The acting User object
    - g.branch_id: The user's home branch (may be None)

    Returns 401 if the header is missing or malformed, or the user is
    unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        try:
            user = permission_service.get_actor(int(raw))
        except NotFoundError:
            return jsonify({"error": "Unknown or inactive user", "code": "unauthenticated"}), 401

        g.current_user = user
        g.branch_id = user.branch_id

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific permission. Apply below @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_actor was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

            try:
                permission_service.require_permission(g.current_user, permission_code)
            except PermissionDeniedError as e:
                return jsonify(e.to_dict()), e.status_code

            return f(*args, **kwargs)

        return decorated_function
    return decorator
