# backend/branchstock/routes/sales.py
"""
Point-of-sale API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor, require_permission
from ..errors import InventoryError, ValidationError
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_actor
@require_permission("CREATE_SALE")
def create_sale():
    """
    Record a sale.

    Request body:
    {
        "branch_id": int (optional, defaults to your branch),
        "items": [{"product_id": int, "quantity": int, "unit_price": "12500.00" (optional)}, ...],
        "discount": "0.00" (optional),
        "payment_method": "cash" | "transfer" | "debit",
        "customer_name": str (optional),
        "customer_phone": str (optional),
        "notes": str (optional)
    }

    Returns:
        201: Sale recorded with its invoice number
        400: Invalid request
        409: Insufficient stock (nothing recorded)
    """
    data = request.get_json(silent=True) or {}

    try:
        branch_id = data.get("branch_id", g.branch_id)
        if branch_id is None:
            raise ValidationError("branch_id is required", field="branch_id", value=None)

        sale = sales_service.record_sale(
            branch_id=branch_id,
            operator_id=g.current_user.id,
            items=data.get("items"),
            discount=data.get("discount", 0),
            payment_method=data.get("payment_method", "cash"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            notes=data.get("notes"),
        )
        return jsonify(sale.to_dict(include_items=True)), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_actor
@require_permission("VIEW_SALES")
def list_sales():
    """
    Query params:
        branch_id: int (optional)
        limit: max rows (default 100)
    """
    sales = sales_service.list_sales(
        branch_id=request.args.get("branch_id", type=int),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
@require_actor
@require_permission("VIEW_SALES")
def get_sale(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(sale.to_dict(include_items=True)), 200


@sales_bp.delete("/<int:sale_id>")
@require_actor
@require_permission("CANCEL_SALE")
def cancel_sale(sale_id: int):
    """
    Cancel a sale; its items return to stock through offsetting movements.
    """
    try:
        invoice_number = sales_service.cancel_sale(sale_id, g.current_user.id)
        return jsonify({"cancelled": True, "id": sale_id, "invoice_number": invoice_number}), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
