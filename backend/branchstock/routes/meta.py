# backend/branchstock/routes/meta.py
"""
Enum option lists for clients (dropdowns, badges).
"""
from flask import Blueprint, jsonify

from ..enums import ALL_ENUMS, StockMovementType, TransferStatus
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS

meta_bp = Blueprint("meta", __name__, url_prefix="/api/meta")


@meta_bp.get("/enums")
def list_enums():
    """
    All closed value sets as [{"value", "label"}], plus colors where defined.
    """
    data = {name: enum_cls.options() for name, enum_cls in ALL_ENUMS.items()}
    data["transfer_status_colors"] = {s.value: s.color for s in TransferStatus}
    data["movement_type_colors"] = {t.value: t.color for t in StockMovementType}
    return jsonify(data), 200


@meta_bp.get("/permissions")
def list_permissions():
    return jsonify({
        "permissions": [
            {"code": code, "name": name, "description": description, "category": category}
            for code, name, description, category in PERMISSION_DEFINITIONS
        ],
        "roles": DEFAULT_ROLE_PERMISSIONS,
    }), 200
