from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import LedgerImmutabilityError
from branchstock.time_utils import to_utc_z


class BranchStock(db.Model):
    """
    Current quantity of a product at a branch (projection of the ledger).

    INVARIANTS:
    - One row per (branch_id, product_id)
    - quantity >= 0 (CHECK constraint backs the ledger's own guard)
    - quantity equals stock_after of the latest StockMovement for the pair
    - Written only by services/stock_service.record_movement; min_stock is
      the only field user actions may change directly
    """
    __tablename__ = "branch_stocks"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "product_id", name="uq_branch_stocks_branch_product"),
        db.CheckConstraint("quantity >= 0", name="ck_branch_stocks_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("stocks", lazy=True))
    product = db.relationship("Product", backref=db.backref("branch_stocks", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock

    def __repr__(self) -> str:
        return f"<BranchStock branch_id={self.branch_id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    Every change to BranchStock.quantity has exactly one row here explaining
    it. Rows are never updated or deleted; corrections are new offsetting
    entries. reference_id points at the originating Sale/Transfer without a
    foreign key so history survives removal of the parent document.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_branch_product", "branch_id", "product_id", "id"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # in / out (enums.StockMovementType)
    type = db.Column(db.String(8), nullable=False, index=True)

    # sale / transfer_in / transfer_out / adjustment / initial (enums.StockReferenceType)
    reference_type = db.Column(db.String(20), nullable=False)
    reference_id = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(500), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    branch = db.relationship("Branch")
    product = db.relationship("Product")
    creator = db.relationship("User", foreign_keys=[created_by])

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == "in" else -self.quantity

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} {self.type} {self.quantity} "
            f"branch_id={self.branch_id} product_id={self.product_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "type": self.type,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "quantity": self.quantity,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutabilityError(
        f"Stock movement {target.id} is immutable",
        {"movement_id": target.id},
    )


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutabilityError(
        f"Stock movement {target.id} cannot be deleted",
        {"movement_id": target.id},
    )
