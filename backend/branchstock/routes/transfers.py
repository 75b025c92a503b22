# backend/branchstock/routes/transfers.py
"""
Inter-branch transfer API routes.

Every state change is a separate endpoint; the service enforces the
transition rules and raises InvalidTransferStateError (409) otherwise.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor, require_permission
from ..errors import InventoryError
from ..services import transfer_service


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


def _error(e: InventoryError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def _unexpected(action: str, transfer_id: int | None = None):
    db.session.rollback()
    current_app.logger.exception("Failed to %s transfer %s", action, transfer_id if transfer_id is not None else "")
    return jsonify({"error": "Internal server error"}), 500


@transfers_bp.post("")
@require_actor
@require_permission("CREATE_TRANSFER")
def create_transfer():
    """
    Create a transfer document.

    Request body:
    {
        "type": "request" | "send",
        "from_branch_id": int (optional for "send": defaults to your branch),
        "to_branch_id": int (optional for "request": defaults to your branch),
        "items": [{"product_id": int, "quantity_requested": int}, ...],
        "notes": str (optional),
        "draft": bool (optional, save without submitting)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        404: Branch or product not found
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.create_transfer(
            type=data.get("type", "request"),
            from_branch_id=data.get("from_branch_id"),
            to_branch_id=data.get("to_branch_id"),
            items=data.get("items"),
            actor_id=g.current_user.id,
            notes=data.get("notes"),
            as_draft=bool(data.get("draft", False)),
        )
        return jsonify(transfer.to_dict(include_items=True)), 201

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("create")


@transfers_bp.get("")
@require_actor
@require_permission("VIEW_TRANSFERS")
def list_transfers():
    """
    Query params:
        branch_id: int (matches source or destination)
        status: draft | pending | approved | rejected | sent | received
        limit: max rows (default 100)
    """
    try:
        transfers = transfer_service.list_transfers(
            branch_id=request.args.get("branch_id", type=int),
            status=request.args.get("status"),
            limit=request.args.get("limit", 100, type=int),
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"items": [t.to_dict() for t in transfers], "count": len(transfers)}), 200


@transfers_bp.get("/<int:transfer_id>")
@require_actor
@require_permission("VIEW_TRANSFERS")
def get_transfer(transfer_id: int):
    try:
        transfer = transfer_service.get_transfer(transfer_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(transfer.to_dict(include_items=True)), 200


@transfers_bp.post("/<int:transfer_id>/submit")
@require_actor
@require_permission("CREATE_TRANSFER")
def submit_transfer(transfer_id: int):
    """Submit a draft for approval (draft -> pending)."""
    try:
        transfer = transfer_service.submit_transfer(transfer_id, g.current_user.id)
        return jsonify(transfer.to_dict(include_items=True)), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("submit", transfer_id)


@transfers_bp.post("/<int:transfer_id>/approve")
@require_actor
@require_permission("APPROVE_TRANSFER")
def approve_transfer(transfer_id: int):
    """
    Approve a transfer (pending -> approved).

    Returns:
        200: Transfer approved
        404: Transfer not found
        409: Transfer is not pending
    """
    try:
        transfer = transfer_service.approve_transfer(transfer_id, g.current_user.id)
        return jsonify(transfer.to_dict(include_items=True)), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("approve", transfer_id)


@transfers_bp.post("/<int:transfer_id>/reject")
@require_actor
@require_permission("REJECT_TRANSFER")
def reject_transfer(transfer_id: int):
    """
    Reject a transfer (pending -> rejected).

    Request body: {"rejection_reason": str}
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.reject_transfer(
            transfer_id,
            g.current_user.id,
            reason=data.get("rejection_reason"),
        )
        return jsonify(transfer.to_dict(include_items=True)), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("reject", transfer_id)


@transfers_bp.post("/<int:transfer_id>/send")
@require_actor
@require_permission("SEND_TRANSFER")
def send_transfer(transfer_id: int):
    """
    Ship a transfer (approved -> sent). Stock leaves the source branch.

    Request body (optional):
    {
        "items": [{"id": item_id, "quantity_sent": int}, ...]
    }
    Items not listed ship their full requested quantity.

    Returns:
        200: Transfer sent, delivery note number issued
        409: Wrong state or insufficient stock at the source
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.send_transfer(
            transfer_id,
            g.current_user.id,
            sent_quantities=data.get("items"),
        )
        return jsonify(transfer.to_dict(include_items=True)), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("send", transfer_id)


@transfers_bp.post("/<int:transfer_id>/receive")
@require_actor
@require_permission("RECEIVE_TRANSFER")
def receive_transfer(transfer_id: int):
    """
    Receive a transfer (sent -> received). Stock enters the destination branch.

    Request body (optional):
    {
        "items": [{"id": item_id, "quantity_received": int}, ...],
        "receiving_notes": str,
        "receiving_photo": str (path of an already-stored photo)
    }
    Items not listed are received in full (quantity_sent).
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.receive_transfer(
            transfer_id,
            g.current_user.id,
            received_quantities=data.get("items"),
            receiving_notes=data.get("receiving_notes"),
            receiving_photo=data.get("receiving_photo"),
        )
        return jsonify(transfer.to_dict(include_items=True)), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("receive", transfer_id)


@transfers_bp.delete("/<int:transfer_id>")
@require_actor
@require_permission("DELETE_TRANSFER")
def delete_transfer(transfer_id: int):
    """Delete a draft or pending transfer."""
    try:
        transfer_service.delete_transfer(transfer_id, g.current_user.id)
        return jsonify({"deleted": True, "id": transfer_id}), 200

    except InventoryError as e:
        return _error(e)
    except Exception:
        return _unexpected("delete", transfer_id)
