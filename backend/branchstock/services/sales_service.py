"""
Sales Service - atomic point-of-sale recording

WHY: A sale, its invoice number and the stock it consumes are one fact. The
sale header, its items and one `out`/`sale` ledger movement per item are
written in a single transaction; if any item is short the whole sale is
rolled back and no invoice number is consumed.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..enums import PaymentMethod, StockMovementType, StockReferenceType
from ..errors import NotFoundError, ValidationError
from ..models import Branch, Product, Sale, SaleItem, User
from ..time_utils import Clock, resolve_clock
from ..validation import optional_str, require_choice, require_int, require_items, require_money
from .concurrency import lock_for_update, run_in_transaction
from .numbering_service import TAG_INVOICE, assign_number
from .stock_service import record_movement


def _normalize_items(items) -> list[dict]:
    lines = []
    for index, item in enumerate(require_items(items)):
        line = {
            "product_id": require_int(item.get("product_id"), f"items.{index}.product_id", minimum=1),
            "quantity": require_int(item.get("quantity"), f"items.{index}.quantity", minimum=1),
            "unit_price": None,
        }
        if item.get("unit_price") is not None:
            line["unit_price"] = require_money(item["unit_price"], f"items.{index}.unit_price")
        lines.append(line)
    return lines


def record_sale(
    branch_id: int,
    operator_id: int,
    items,
    discount=0,
    payment_method=PaymentMethod.CASH,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    notes: str | None = None,
    clock: Clock | None = None,
) -> Sale:
    """
    Record a completed sale at a branch.

    Items without a unit_price are sold at the product's current price; the
    price used is snapshotted on the SaleItem.

    Raises:
        ValidationError: empty items, bad quantity/price, discount > subtotal
        NotFoundError: unknown branch, operator or product
        InsufficientStockError: any item exceeds the branch's stock (nothing persists)
    """
    lines = _normalize_items(items)
    discount = require_money(discount if discount is not None else 0, "discount")
    payment = require_choice(payment_method, "payment_method", PaymentMethod)
    customer_name = optional_str(customer_name, "customer_name", max_length=255)
    customer_phone = optional_str(customer_phone, "customer_phone", max_length=20)
    notes = optional_str(notes, "notes")

    def _op():
        branch = db.session.get(Branch, require_int(branch_id, "branch_id", minimum=1))
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        operator = db.session.get(User, operator_id)
        if operator is None:
            raise NotFoundError("User", operator_id)

        priced = []
        subtotal = Decimal("0.00")
        for line in lines:
            product = db.session.get(Product, line["product_id"])
            if product is None:
                raise NotFoundError("Product", line["product_id"])
            unit_price = line["unit_price"] if line["unit_price"] is not None else Decimal(product.price)
            line_total = unit_price * line["quantity"]
            subtotal += line_total
            priced.append((product, line["quantity"], unit_price, line_total))

        if discount > subtotal:
            raise ValidationError(
                f"discount ({discount}) exceeds subtotal ({subtotal})",
                field="discount",
                value=str(discount),
            )

        now = resolve_clock(clock).now()
        sale = Sale(
            branch_id=branch.id,
            user_id=operator.id,
            sale_date=now,
            customer_name=customer_name,
            customer_phone=customer_phone,
            subtotal=subtotal,
            discount=discount,
            grand_total=subtotal - discount,
            payment_method=payment.value,
            notes=notes,
        )
        assign_number(
            sale,
            "invoice_number",
            Sale.invoice_number,
            tag=TAG_INVOICE,
            branch_code=branch.code,
            at=now,
        )

        for product, quantity, unit_price, line_total in priced:
            sale.items.append(
                SaleItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=unit_price,
                    subtotal=line_total,
                )
            )
            record_movement(
                branch.id,
                product.id,
                StockMovementType.OUT,
                quantity,
                StockReferenceType.SALE,
                sale.id,
                operator.id,
                notes=f"Sale {sale.invoice_number}",
                clock=clock,
            )

        db.session.flush()
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Sale %s recorded at branch %s: %s item(s), total %s",
        sale.invoice_number, sale.branch_id, sale.total_items, sale.grand_total,
    )
    return sale


def cancel_sale(sale_id: int, actor_id: int, clock: Clock | None = None) -> str:
    """
    Cancel a sale: return every item to stock with an offsetting `in`
    movement (reference_type=adjustment, reference_id=sale id), then delete
    the sale and its items. The ledger keeps both sides.

    Returns the cancelled invoice number.
    """
    def _op():
        sale = (
            lock_for_update(db.session.query(Sale).filter_by(id=sale_id))
            .populate_existing()
            .first()
        )
        if sale is None:
            raise NotFoundError("Sale", sale_id)

        invoice_number = sale.invoice_number
        for item in sale.items:
            record_movement(
                sale.branch_id,
                item.product_id,
                StockMovementType.IN,
                item.quantity,
                StockReferenceType.ADJUSTMENT,
                sale.id,
                actor_id,
                notes=f"Cancel sale {invoice_number}",
                clock=clock,
            )

        db.session.delete(sale)
        return invoice_number

    invoice_number = run_in_transaction(_op)
    current_app.logger.info("Sale %s cancelled by user %s", invoice_number, actor_id)
    return invoice_number


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    return sale


def list_sales(branch_id: int | None = None, limit: int = 100) -> list[Sale]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()
