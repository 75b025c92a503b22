# Overview: Stock ledger (StockMovement) and branch stock projection (BranchStock).

# backend/branchstock/services/stock_service.py

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import StockMovementType, StockReferenceType
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Branch, BranchStock, Product, StockMovement
from ..time_utils import Clock, resolve_clock
from ..validation import require_choice, require_int, optional_str
from .concurrency import lock_for_update, run_in_transaction
"""
Stock Ledger Invariants (authoritative)

Ledger:
- StockMovement rows are append-only; corrections are new offsetting rows.
- stock_after = stock_before + quantity (in) / stock_before - quantity (out).
- quantity > 0 on every row; direction carries the sign.

Projection:
- BranchStock.quantity for (branch, product) always equals the stock_after of
  the latest movement for that pair (0 before the first movement).
- BranchStock.quantity never goes below zero: an `out` larger than the
  available quantity is refused before anything is written.
- BranchStock rows are created lazily by the first movement into a pair.

Atomicity:
- record_movement only flushes; it joins the caller's unit of work so a
  sale or transfer transition commits or rolls back as a whole.
- The BranchStock row is locked (SELECT ... FOR UPDATE) for the duration of
  the caller's transaction, serializing concurrent movements on the pair.
"""


def _default_min_stock() -> int:
    return current_app.config.get("DEFAULT_MIN_STOCK", 5)


def _require_branch(branch_id: int) -> Branch:
    branch_id = require_int(branch_id, "branch_id", minimum=1)
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch", branch_id)
    return branch


def _require_product(product_id: int) -> Product:
    product_id = require_int(product_id, "product_id", minimum=1)
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def _locked_stock_row(branch_id: int, product_id: int) -> BranchStock | None:
    return (
        lock_for_update(
            db.session.query(BranchStock).filter_by(branch_id=branch_id, product_id=product_id)
        )
        .populate_existing()
        .first()
    )


def get_or_create_stock_row(branch_id: int, product_id: int, min_stock: int | None = None) -> BranchStock:
    """
    Return the locked BranchStock row for the pair, creating a zero row if absent.

    A concurrent creator losing the unique-constraint race re-reads the row
    the winner inserted.
    """
    stock = _locked_stock_row(branch_id, product_id)
    if stock is not None:
        return stock

    stock = BranchStock(
        branch_id=branch_id,
        product_id=product_id,
        quantity=0,
        min_stock=_default_min_stock() if min_stock is None else min_stock,
    )
    savepoint = db.session.begin_nested()
    try:
        db.session.add(stock)
        db.session.flush()
    except IntegrityError:
        savepoint.rollback()
        stock = _locked_stock_row(branch_id, product_id)
        if stock is None:
            raise
        return stock
    savepoint.commit()
    return stock


def record_movement(
    branch_id: int,
    product_id: int,
    direction,
    quantity: int,
    reference_type,
    reference_id: int | None,
    actor_id: int | None,
    notes: str | None = None,
    clock: Clock | None = None,
) -> StockMovement:
    """
    Append one ledger entry and move the projection to match.

    Runs inside the caller's transaction (flush only, no commit).

    Raises:
        ValidationError: quantity not a positive integer, unknown direction/reference type
        NotFoundError: branch or product does not exist
        InsufficientStockError: an `out` would drive the quantity below zero
    """
    direction = require_choice(direction, "direction", StockMovementType)
    reference_type = require_choice(reference_type, "reference_type", StockReferenceType)
    quantity = require_int(quantity, "quantity", minimum=1)
    notes = optional_str(notes, "notes", max_length=500)

    branch_id = _require_branch(branch_id).id
    product = _require_product(product_id)
    product_id = product.id

    stock = get_or_create_stock_row(branch_id, product_id)
    stock_before = stock.quantity

    if direction is StockMovementType.OUT and quantity > stock_before:
        current_app.logger.info(
            "Refused stock out: branch=%s product=%s requested=%s available=%s",
            branch_id, product_id, quantity, stock_before,
        )
        raise InsufficientStockError(
            branch_id=branch_id,
            product_id=product_id,
            requested=quantity,
            available=stock_before,
            sku=product.sku,
        )

    stock_after = stock_before + direction.sign * quantity

    movement = StockMovement(
        branch_id=branch_id,
        product_id=product_id,
        type=direction.value,
        reference_type=reference_type.value,
        reference_id=reference_id,
        quantity=quantity,
        stock_before=stock_before,
        stock_after=stock_after,
        notes=notes,
        created_by=actor_id,
        created_at=resolve_clock(clock).now(),
    )
    db.session.add(movement)

    stock.quantity = stock_after
    db.session.flush()

    return movement


def add_stock(
    branch_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None,
    reference_type=StockReferenceType.ADJUSTMENT,
    reference_id: int | None = None,
    notes: str | None = None,
    clock: Clock | None = None,
) -> StockMovement:
    return record_movement(
        branch_id, product_id, StockMovementType.IN, quantity,
        reference_type, reference_id, actor_id, notes, clock,
    )


def reduce_stock(
    branch_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None,
    reference_type=StockReferenceType.ADJUSTMENT,
    reference_id: int | None = None,
    notes: str | None = None,
    clock: Clock | None = None,
) -> StockMovement:
    return record_movement(
        branch_id, product_id, StockMovementType.OUT, quantity,
        reference_type, reference_id, actor_id, notes, clock,
    )


def adjust_stock(
    branch_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None,
    notes: str | None = None,
    clock: Clock | None = None,
) -> StockMovement:
    """
    Manual stock correction with a signed quantity (its own transaction).

    Positive quantities add stock, negative ones remove it; zero is rejected.
    """
    quantity = require_int(quantity, "quantity")
    if quantity == 0:
        raise ValidationError("quantity must not be 0", field="quantity", value=quantity)

    def _op():
        direction = StockMovementType.IN if quantity > 0 else StockMovementType.OUT
        return record_movement(
            branch_id, product_id, direction, abs(quantity),
            StockReferenceType.ADJUSTMENT, None, actor_id, notes, clock,
        )

    return run_in_transaction(_op)


def set_initial_stock(
    branch_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None,
    min_stock: int | None = None,
    clock: Clock | None = None,
) -> BranchStock:
    """
    Opening balance for a pair: an `initial` movement (when quantity > 0)
    and an optional min_stock threshold. Runs inside the caller's transaction.
    """
    quantity = require_int(quantity, "initial_quantity", minimum=0)
    if min_stock is not None:
        min_stock = require_int(min_stock, "min_stock", minimum=0)

    stock = get_or_create_stock_row(branch_id, product_id, min_stock=min_stock)
    if min_stock is not None:
        stock.min_stock = min_stock
    if quantity > 0:
        record_movement(
            branch_id, product_id, StockMovementType.IN, quantity,
            StockReferenceType.INITIAL, None, actor_id, "Initial stock", clock,
        )
    db.session.flush()
    return stock


def set_min_stock(branch_id: int, product_id: int, min_stock: int) -> BranchStock:
    """Change the low-stock threshold; quantity is untouched."""
    min_stock = require_int(min_stock, "min_stock", minimum=0)

    def _op():
        stock = get_or_create_stock_row(
            _require_branch(branch_id).id, _require_product(product_id).id, min_stock=min_stock
        )
        stock.min_stock = min_stock
        return stock

    return run_in_transaction(_op)


# =============================================================================
# Projection (read side)
# =============================================================================

def quantity_of(branch_id: int, product_id: int) -> int:
    """Current quantity for the pair; 0 when no row exists yet."""
    quantity = (
        db.session.query(BranchStock.quantity)
        .filter_by(branch_id=branch_id, product_id=product_id)
        .scalar()
    )
    return quantity or 0


def is_stock_available(branch_id: int, product_id: int, quantity: int) -> bool:
    return quantity_of(branch_id, product_id) >= quantity


def is_low_stock(branch_stock: BranchStock) -> bool:
    return branch_stock.quantity <= branch_stock.min_stock


def list_low_stock(branch_id: int | None = None) -> list[BranchStock]:
    query = db.session.query(BranchStock).filter(BranchStock.quantity <= BranchStock.min_stock)
    if branch_id is not None:
        query = query.filter(BranchStock.branch_id == branch_id)
    return query.order_by(BranchStock.branch_id, BranchStock.quantity, BranchStock.product_id).all()


def list_branch_stocks(
    branch_id: int | None = None,
    search: str | None = None,
    low_stock: bool = False,
    limit: int = 100,
) -> list[BranchStock]:
    query = db.session.query(BranchStock).join(Product, Product.id == BranchStock.product_id)
    if branch_id is not None:
        query = query.filter(BranchStock.branch_id == branch_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if low_stock:
        query = query.filter(BranchStock.quantity <= BranchStock.min_stock)
    return query.order_by(BranchStock.branch_id, Product.name).limit(limit).all()


def list_movements(
    branch_id: int | None = None,
    product_id: int | None = None,
    direction=None,
    reference_type=None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[StockMovement]:
    """Ledger entries, newest first. Date bounds are inclusive."""
    query = db.session.query(StockMovement)
    if branch_id is not None:
        query = query.filter(StockMovement.branch_id == branch_id)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if direction is not None:
        query = query.filter(StockMovement.type == require_choice(direction, "type", StockMovementType).value)
    if reference_type is not None:
        query = query.filter(
            StockMovement.reference_type
            == require_choice(reference_type, "reference_type", StockReferenceType).value
        )
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)
    return query.order_by(StockMovement.id.desc()).limit(limit).all()


def latest_movement(branch_id: int, product_id: int) -> StockMovement | None:
    return (
        db.session.query(StockMovement)
        .filter_by(branch_id=branch_id, product_id=product_id)
        .order_by(StockMovement.id.desc())
        .first()
    )
