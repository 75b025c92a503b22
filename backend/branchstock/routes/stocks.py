# backend/branchstock/routes/stocks.py
"""
Branch stock and stock ledger API routes.

Stock levels are read from the BranchStock projection; every change goes
through the ledger (services/stock_service.record_movement).
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor, require_permission
from ..errors import InventoryError, ValidationError
from ..services import notification_service, stock_service
from branchstock.time_utils import parse_iso_datetime


stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


def _stock_row(stock) -> dict:
    data = stock.to_dict()
    data["sku"] = stock.product.sku
    data["product_name"] = stock.product.name
    data["branch_code"] = stock.branch.code
    return data


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime", field=name, value=raw)


@stocks_bp.get("")
@require_actor
@require_permission("VIEW_STOCK")
def list_stocks():
    """
    Stock levels per branch.

    Query params:
        branch_id: int (optional, defaults to all branches)
        search: matches product name or SKU
        low_stock: "1" to only show rows at or below min_stock
        limit: max rows (default 100)
    """
    stocks = stock_service.list_branch_stocks(
        branch_id=request.args.get("branch_id", type=int),
        search=request.args.get("search"),
        low_stock=request.args.get("low_stock") in ("1", "true", "yes"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"items": [_stock_row(s) for s in stocks], "count": len(stocks)}), 200


@stocks_bp.get("/low")
@require_actor
@require_permission("VIEW_STOCK")
def low_stock():
    stocks = stock_service.list_low_stock(branch_id=request.args.get("branch_id", type=int))
    return jsonify({"items": [_stock_row(s) for s in stocks], "count": len(stocks)}), 200


@stocks_bp.get("/notifications")
@require_actor
def notifications():
    """
    Outstanding action counts for the acting user (transfers to approve,
    send or receive, and low stock rows at their branch).
    """
    return jsonify(notification_service.action_counts(g.current_user)), 200


@stocks_bp.get("/movements")
@require_actor
@require_permission("VIEW_STOCK")
def list_movements():
    """
    Stock ledger entries, newest first.

    Query params:
        branch_id, product_id: int (optional)
        type: in | out
        reference_type: sale | transfer_in | transfer_out | adjustment | initial
        start, end: ISO-8601 datetimes (inclusive)
        limit: max rows (default 100)
    """
    try:
        movements = stock_service.list_movements(
            branch_id=request.args.get("branch_id", type=int),
            product_id=request.args.get("product_id", type=int),
            direction=request.args.get("type"),
            reference_type=request.args.get("reference_type"),
            start=_date_arg("start"),
            end=_date_arg("end"),
            limit=request.args.get("limit", 100, type=int),
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200


@stocks_bp.post("/adjust")
@require_actor
@require_permission("ADJUST_STOCK")
def adjust_stock():
    """
    Manual stock adjustment.

    Request body:
    {
        "branch_id": int,
        "product_id": int,
        "quantity": int (positive adds stock, negative removes it, not 0),
        "notes": str (optional)
    }

    Returns:
        201: Movement recorded (with the new stock level)
        400: Invalid request
        404: Branch or product not found
        409: Adjustment would make stock negative
    """
    data = request.get_json(silent=True) or {}

    try:
        movement = stock_service.adjust_stock(
            branch_id=data.get("branch_id"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            actor_id=g.current_user.id,
            notes=data.get("notes"),
        )
        current_app.logger.info(
            "Stock adjusted: branch=%s product=%s %s%s -> %s by user %s",
            movement.branch_id, movement.product_id,
            "+" if movement.type == "in" else "-", movement.quantity,
            movement.stock_after, g.current_user.id,
        )
        return jsonify(movement.to_dict()), 201

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@stocks_bp.put("/min-stock")
@require_actor
@require_permission("ADJUST_STOCK")
def set_min_stock():
    """
    Request body: {"branch_id": int, "product_id": int, "min_stock": int}
    """
    data = request.get_json(silent=True) or {}

    try:
        stock = stock_service.set_min_stock(
            branch_id=data.get("branch_id"),
            product_id=data.get("product_id"),
            min_stock=data.get("min_stock"),
        )
        return jsonify(_stock_row(stock)), 200

    except InventoryError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set minimum stock")
        return jsonify({"error": "Internal server error"}), 500
