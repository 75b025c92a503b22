from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z
from branchstock.validation import format_money


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    INVARIANTS:
    - subtotal = sum(item.subtotal)
    - grand_total = subtotal - discount, with 0 <= discount <= subtotal
    - every item has a matching `out`/`sale` StockMovement referencing this sale
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_date", "branch_id", "sale_date"),
        db.CheckConstraint("discount >= 0", name="ck_sales_discount_non_negative"),
        db.CheckConstraint("grand_total >= 0", name="ck_sales_grand_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # INV/<branch_code>/<YYYY>/<MM>/<NNN>
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    # Operator (cashier) who rang up the sale
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(20), nullable=True)

    subtotal = db.Column(db.Numeric(15, 2), nullable=False)
    discount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(15, 2), nullable=False)

    # cash / transfer / debit (enums.PaymentMethod)
    payment_method = db.Column(db.String(16), nullable=False)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("sales", lazy=True))
    operator = db.relationship("User", foreign_keys=[user_id])

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "sale_date": to_utc_z(self.sale_date),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal": format_money(self.subtotal),
            "discount": format_money(self.discount),
            "grand_total": format_money(self.grand_total),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item of a sale; unit_price is a snapshot taken at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(
        db.Integer,
        db.ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    subtotal = db.Column(db.Numeric(15, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "subtotal": format_money(self.subtotal),
        }
