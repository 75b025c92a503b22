# backend/branchstock/services/transfer_service.py
"""
Inter-branch transfer service.

WHY: Move stock between branches with an approval step and full
accountability. Stock leaves the source branch when the transfer is sent
(`out`/`transfer_out` movements) and enters the destination when it is
received (`in`/`transfer_in` movements); nothing moves before that.

LIFECYCLE:
1. DRAFT: Saved, not yet submitted (optional)
2. PENDING: Awaiting approval
3. APPROVED: Approved, ready to send
4. REJECTED: Refused at approval (terminal)
5. SENT: Shipped from the source, delivery note issued
6. RECEIVED: Arrived at the destination (terminal)

Only DRAFT and PENDING transfers can be deleted.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..enums import StockMovementType, StockReferenceType, TransferStatus, TransferType
from ..errors import InvalidTransferStateError, NotFoundError, ValidationError
from ..models import Branch, Product, Transfer, TransferItem, User
from ..time_utils import Clock, resolve_clock
from ..validation import (
    optional_str,
    quantity_overrides,
    require_choice,
    require_int,
    require_items,
    require_str,
)
from .concurrency import lock_for_update, run_in_transaction
from .numbering_service import TAG_DELIVERY_NOTE, TAG_TRANSFER, assign_number
from .stock_service import record_movement


def _get_branch(branch_id: int, field: str) -> Branch:
    branch_id = require_int(branch_id, field, minimum=1)
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch", branch_id)
    return branch


def _get_actor(actor_id: int) -> User:
    actor = db.session.get(User, actor_id)
    if actor is None:
        raise NotFoundError("User", actor_id)
    return actor


def _locked_transfer(transfer_id: int) -> Transfer:
    transfer = (
        lock_for_update(db.session.query(Transfer).filter_by(id=transfer_id))
        .populate_existing()
        .first()
    )
    if transfer is None:
        raise NotFoundError("Transfer", transfer_id)
    return transfer


def _require_state(transfer: Transfer, *allowed: TransferStatus) -> None:
    if transfer.state not in allowed:
        required = allowed[0].value if len(allowed) == 1 else tuple(s.value for s in allowed)
        raise InvalidTransferStateError(transfer.id, transfer.status, required)


def _normalize_items(items) -> list[tuple[int, int]]:
    """[(product_id, quantity_requested), ...] with distinct, existing products."""
    lines = []
    seen = set()
    for index, item in enumerate(require_items(items)):
        product_id = require_int(item.get("product_id"), f"items.{index}.product_id", minimum=1)
        raw_quantity = item.get("quantity_requested", item.get("quantity"))
        quantity = require_int(raw_quantity, f"items.{index}.quantity_requested", minimum=1)
        if product_id in seen:
            raise ValidationError(
                f"Product {product_id} appears more than once",
                field=f"items.{index}.product_id",
                value=product_id,
            )
        seen.add(product_id)
        if db.session.get(Product, product_id) is None:
            raise NotFoundError("Product", product_id)
        lines.append((product_id, quantity))
    return lines


def _resolve_branches(transfer_type: TransferType, from_branch_id, to_branch_id, actor: User):
    # REQUEST pulls stock into the actor's branch; SEND pushes stock out of it
    if transfer_type is TransferType.REQUEST and to_branch_id is None:
        to_branch_id = actor.branch_id
    if transfer_type is TransferType.SEND and from_branch_id is None:
        from_branch_id = actor.branch_id

    if from_branch_id is None:
        raise ValidationError("from_branch_id is required", field="from_branch_id", value=None)
    if to_branch_id is None:
        raise ValidationError("to_branch_id is required", field="to_branch_id", value=None)

    from_branch = _get_branch(from_branch_id, "from_branch_id")
    to_branch = _get_branch(to_branch_id, "to_branch_id")
    if from_branch.id == to_branch.id:
        raise ValidationError(
            "Source and destination branch must differ",
            field="to_branch_id",
            value=to_branch.id,
        )
    return from_branch, to_branch


def create_transfer(
    type,
    from_branch_id: int | None,
    to_branch_id: int | None,
    items,
    actor_id: int,
    notes: str | None = None,
    as_draft: bool = False,
    clock: Clock | None = None,
) -> Transfer:
    """
    Create a transfer document (status: PENDING, or DRAFT when as_draft).

    Args:
        type: "request" or "send"
        from_branch_id: Source branch (defaults to the actor's branch for "send")
        to_branch_id: Destination branch (defaults to the actor's branch for "request")
        items: [{"product_id": int, "quantity_requested": int}, ...]
        actor_id: Requesting user
        notes: Optional free text
        as_draft: Save without submitting for approval

    Returns:
        Transfer: The created transfer with its items

    Raises:
        ValidationError: bad items, same source/destination, missing branch
        NotFoundError: unknown actor, branch or product
    """
    transfer_type = require_choice(type, "type", TransferType)
    notes = optional_str(notes, "notes")

    def _op():
        actor = _get_actor(actor_id)
        from_branch, to_branch = _resolve_branches(transfer_type, from_branch_id, to_branch_id, actor)
        lines = _normalize_items(items)
        now = resolve_clock(clock).now()

        transfer = Transfer(
            type=transfer_type.value,
            from_branch_id=from_branch.id,
            to_branch_id=to_branch.id,
            status=(TransferStatus.DRAFT if as_draft else TransferStatus.PENDING).value,
            notes=notes,
            requested_by=actor.id,
            requested_at=now,
        )
        assign_number(
            transfer,
            "transfer_number",
            Transfer.transfer_number,
            tag=TAG_TRANSFER,
            branch_code=from_branch.code,
            at=now,
        )

        for product_id, quantity in lines:
            transfer.items.append(TransferItem(product_id=product_id, quantity_requested=quantity))
        db.session.flush()

        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info(
        "Transfer %s created (%s, %s)", transfer.transfer_number, transfer.type, transfer.status
    )
    return transfer


def submit_transfer(transfer_id: int, actor_id: int, clock: Clock | None = None) -> Transfer:
    """DRAFT -> PENDING."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.DRAFT)
        transfer.status = TransferStatus.PENDING.value
        transfer.requested_at = resolve_clock(clock).now()
        return transfer

    return run_in_transaction(_op)


def approve_transfer(transfer_id: int, actor_id: int, clock: Clock | None = None) -> Transfer:
    """PENDING -> APPROVED. No stock moves yet."""
    def _op():
        actor = _get_actor(actor_id)
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.PENDING)
        transfer.status = TransferStatus.APPROVED.value
        transfer.approved_by = actor.id
        transfer.approved_at = resolve_clock(clock).now()
        return transfer

    return run_in_transaction(_op)


def reject_transfer(transfer_id: int, actor_id: int, reason: str, clock: Clock | None = None) -> Transfer:
    """
    PENDING -> REJECTED. The rejecting user is recorded as approved_by.

    The state is checked before the reason, so a transfer in the wrong state
    reports InvalidTransferStateError whatever the reason.
    """
    def _op():
        actor = _get_actor(actor_id)
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.PENDING)
        transfer.status = TransferStatus.REJECTED.value
        transfer.rejection_reason = require_str(reason, "rejection_reason")
        transfer.approved_by = actor.id
        transfer.rejected_at = resolve_clock(clock).now()
        return transfer

    return run_in_transaction(_op)


def _check_overrides(transfer: Transfer, overrides: dict[int, int], field: str) -> None:
    known = {item.id for item in transfer.items}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValidationError(
            f"Item {unknown[0]} does not belong to transfer {transfer.id}",
            field=field,
            value=unknown[0],
        )


def send_transfer(
    transfer_id: int,
    actor_id: int,
    sent_quantities=None,
    clock: Clock | None = None,
) -> Transfer:
    """
    APPROVED -> SENT.

    Each item ships `quantity_sent` (defaults to quantity_requested, may be
    lower down to 0). Stock leaves the source branch for every item with
    quantity_sent > 0 and a delivery note number is issued from the source
    branch. Any shortfall aborts the whole send.

    Args:
        sent_quantities: {item_id: quantity} or [{"id": item_id, "quantity_sent": n}, ...]
    """
    overrides = quantity_overrides(sent_quantities, "quantity_sent")

    def _op():
        actor = _get_actor(actor_id)
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.APPROVED)
        _check_overrides(transfer, overrides, "quantity_sent")
        now = resolve_clock(clock).now()

        from_branch = transfer.from_branch
        to_branch = transfer.to_branch

        for item in transfer.items:
            quantity = overrides.get(item.id, item.quantity_requested)
            if quantity > item.quantity_requested:
                raise ValidationError(
                    f"quantity_sent for item {item.id} exceeds quantity_requested ({item.quantity_requested})",
                    field="quantity_sent",
                    value=quantity,
                )
            item.quantity_sent = quantity
            if quantity > 0:
                record_movement(
                    from_branch.id,
                    item.product_id,
                    StockMovementType.OUT,
                    quantity,
                    StockReferenceType.TRANSFER_OUT,
                    transfer.id,
                    actor.id,
                    notes=f"Transfer out to {to_branch.name}",
                    clock=clock,
                )

        transfer.status = TransferStatus.SENT.value
        transfer.sent_by = actor.id
        transfer.sent_at = now
        assign_number(
            transfer,
            "delivery_note_number",
            Transfer.delivery_note_number,
            tag=TAG_DELIVERY_NOTE,
            branch_code=from_branch.code,
            at=now,
        )
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info(
        "Transfer %s sent with delivery note %s", transfer.transfer_number, transfer.delivery_note_number
    )
    return transfer


def receive_transfer(
    transfer_id: int,
    actor_id: int,
    received_quantities=None,
    receiving_notes: str | None = None,
    receiving_photo: str | None = None,
    clock: Clock | None = None,
) -> Transfer:
    """
    SENT -> RECEIVED.

    Each item records `quantity_received` (defaults to quantity_sent, may be
    lower to reflect losses in transit). Stock enters the destination branch
    for every item with quantity_received > 0.
    """
    overrides = quantity_overrides(received_quantities, "quantity_received")
    receiving_notes = optional_str(receiving_notes, "receiving_notes")
    receiving_photo = optional_str(receiving_photo, "receiving_photo", max_length=255)

    def _op():
        actor = _get_actor(actor_id)
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.SENT)
        _check_overrides(transfer, overrides, "quantity_received")

        from_branch = transfer.from_branch
        to_branch = transfer.to_branch

        for item in transfer.items:
            sent = item.quantity_sent or 0
            quantity = overrides.get(item.id, sent)
            if quantity > sent:
                raise ValidationError(
                    f"quantity_received for item {item.id} exceeds quantity_sent ({sent})",
                    field="quantity_received",
                    value=quantity,
                )
            item.quantity_received = quantity
            if quantity > 0:
                record_movement(
                    to_branch.id,
                    item.product_id,
                    StockMovementType.IN,
                    quantity,
                    StockReferenceType.TRANSFER_IN,
                    transfer.id,
                    actor.id,
                    notes=f"Transfer in from {from_branch.name}",
                    clock=clock,
                )

        transfer.status = TransferStatus.RECEIVED.value
        transfer.received_by = actor.id
        transfer.received_at = resolve_clock(clock).now()
        transfer.receiving_notes = receiving_notes
        transfer.receiving_photo = receiving_photo
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info("Transfer %s received", transfer.transfer_number)
    return transfer


def delete_transfer(transfer_id: int, actor_id: int) -> None:
    """Remove a DRAFT or PENDING transfer with its items."""
    def _op():
        transfer = _locked_transfer(transfer_id)
        _require_state(transfer, TransferStatus.DRAFT, TransferStatus.PENDING)
        db.session.delete(transfer)
        return transfer.transfer_number

    number = run_in_transaction(_op)
    current_app.logger.info("Transfer %s deleted by user %s", number, actor_id)


def get_transfer(transfer_id: int) -> Transfer:
    transfer = db.session.get(Transfer, transfer_id)
    if transfer is None:
        raise NotFoundError("Transfer", transfer_id)
    return transfer


def list_transfers(branch_id: int | None = None, status=None, limit: int = 100) -> list[Transfer]:
    """Newest first; the branch filter matches either side of the transfer."""
    query = db.session.query(Transfer)
    if branch_id is not None:
        query = query.filter(or_(Transfer.from_branch_id == branch_id, Transfer.to_branch_id == branch_id))
    if status is not None:
        query = query.filter(Transfer.status == require_choice(status, "status", TransferStatus).value)
    return query.order_by(Transfer.id.desc()).limit(limit).all()
