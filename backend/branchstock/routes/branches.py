# backend/branchstock/routes/branches.py
"""
Branch and staff management API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor, require_permission
from ..errors import InventoryError
from ..services import branch_service


branches_bp = Blueprint("branches", __name__, url_prefix="/api")


@branches_bp.get("/branches")
@require_actor
def list_branches():
    """
    List branches.

    Query params:
        active_only: "1" to hide deactivated branches
    """
    active_only = request.args.get("active_only") in ("1", "true", "yes")
    branches = branch_service.list_branches(active_only=active_only)
    return jsonify({"items": [b.to_dict() for b in branches], "count": len(branches)}), 200


@branches_bp.post("/branches")
@require_actor
@require_permission("MANAGE_BRANCHES")
def create_branch():
    """
    Create a branch.

    Request body:
    {
        "code": str,
        "name": str,
        "address": str (optional),
        "phone": str (optional)
    }

    Returns:
        201: Branch created
        400: Invalid request or duplicate code
    """
    data = request.get_json(silent=True) or {}

    try:
        branch = branch_service.create_branch(
            code=data.get("code"),
            name=data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
        )
        return jsonify(branch.to_dict()), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create branch")
        return jsonify({"error": "Internal server error"}), 500


@branches_bp.get("/branches/<int:branch_id>")
@require_actor
def get_branch(branch_id: int):
    try:
        return jsonify(branch_service.get_branch(branch_id).to_dict()), 200
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@branches_bp.patch("/branches/<int:branch_id>")
@require_actor
@require_permission("MANAGE_BRANCHES")
def update_branch(branch_id: int):
    """
    Update name, address, phone or is_active. The code cannot change.
    """
    data = request.get_json(silent=True) or {}

    try:
        branch = branch_service.update_branch(branch_id, data)
        return jsonify(branch.to_dict()), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update branch %s", branch_id)
        return jsonify({"error": "Internal server error"}), 500


@branches_bp.post("/users")
@require_actor
@require_permission("MANAGE_BRANCHES")
def create_user():
    """
    Register a staff member (credentials are managed by the gateway).

    Request body:
    {
        "username": str,
        "name": str,
        "role": "super_admin" | "branch_admin" | "cashier",
        "branch_id": int (optional),
        "email": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        user = branch_service.create_user(
            username=data.get("username"),
            name=data.get("name"),
            role=data.get("role", "cashier"),
            branch_id=data.get("branch_id"),
            email=data.get("email"),
        )
        return jsonify(user.to_dict()), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@branches_bp.get("/users")
@require_actor
@require_permission("MANAGE_BRANCHES")
def list_users():
    """
    Query params:
        branch_id: int (optional)
        search: matches name or username
    """
    users = branch_service.list_users(
        branch_id=request.args.get("branch_id", type=int),
        search=request.args.get("search"),
    )
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@branches_bp.patch("/users/<int:user_id>")
@require_actor
@require_permission("MANAGE_BRANCHES")
def update_user(user_id: int):
    """
    Update name, email, role, branch_id or is_active. The username cannot change.
    """
    data = request.get_json(silent=True) or {}

    try:
        user = branch_service.update_user(user_id, data)
        return jsonify(user.to_dict()), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@branches_bp.delete("/users/<int:user_id>")
@require_actor
@require_permission("MANAGE_BRANCHES")
def deactivate_user(user_id: int):
    """Soft delete (is_active = false); history keeps the user."""
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate yourself", "code": "validation_error"}), 400

    try:
        user = branch_service.deactivate_user(user_id)
        current_app.logger.info("User %s deactivated by user %s", user.id, g.current_user.id)
        return jsonify(user.to_dict()), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500
