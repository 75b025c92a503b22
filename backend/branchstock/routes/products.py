# backend/branchstock/routes/products.py
"""
Catalog API routes: categories and products.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor, require_permission
from ..errors import InventoryError
from ..services import products_service


products_bp = Blueprint("products", __name__, url_prefix="/api")


@products_bp.get("/categories")
@require_actor
def list_categories():
    categories = products_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories]}), 200


@products_bp.post("/categories")
@require_actor
@require_permission("MANAGE_CATEGORIES")
def create_category():
    data = request.get_json(silent=True) or {}

    try:
        category = products_service.create_category(
            name=data.get("name"),
            description=data.get("description"),
        )
        return jsonify(category.to_dict()), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products")
@require_actor
def list_products():
    """
    List products.

    Query params:
        search: matches name or SKU
        category_id: int
        active_only: "1" to hide deactivated products
        limit: max rows (default 100)
    """
    products = products_service.list_products(
        search=request.args.get("search"),
        category_id=request.args.get("category_id", type=int),
        active_only=request.args.get("active_only") in ("1", "true", "yes"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/products/<int:product_id>")
@require_actor
def get_product(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/products")
@require_actor
@require_permission("MANAGE_PRODUCTS")
def create_product():
    """
    Create a product and open its stock in every active branch.

    Request body:
    {
        "sku": str,
        "name": str,
        "category_id": int,
        "price": "12500.00",
        "description": str (optional),
        "initial_quantity": int (optional, default 0),
        "min_stock": int (optional, default DEFAULT_MIN_STOCK)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        product = products_service.create_product(
            sku=data.get("sku"),
            name=data.get("name"),
            category_id=data.get("category_id"),
            price=data.get("price"),
            actor_id=g.current_user.id,
            description=data.get("description"),
            initial_quantity=data.get("initial_quantity", 0),
            min_stock=data.get("min_stock"),
        )
        return jsonify(product.to_dict()), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/products/<int:product_id>")
@require_actor
@require_permission("MANAGE_PRODUCTS")
def update_product(product_id: int):
    data = request.get_json(silent=True) or {}

    try:
        product = products_service.update_product(product_id, data)
        return jsonify(product.to_dict()), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/products/<int:product_id>")
@require_actor
@require_permission("MANAGE_PRODUCTS")
def deactivate_product(product_id: int):
    """Soft delete (is_active = false)."""
    try:
        product = products_service.deactivate_product(product_id)
        return jsonify(product.to_dict()), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to deactivate product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
