from __future__ import annotations

from ..extensions import db
from ..enums import TransferStatus, TransferType
from branchstock.time_utils import to_utc_z


class Transfer(db.Model):
    """
    Inter-branch stock transfer document.

    LIFECYCLE:
    1. DRAFT: Saved but not yet submitted (optional)
    2. PENDING: Awaiting approval
    3. APPROVED: Approved, ready to send
    4. REJECTED: Refused at approval (terminal)
    5. SENT: Shipped from the source branch (stock left the source)
    6. RECEIVED: Arrived at the destination (stock entered the destination, terminal)

    transfer_number is issued from the source branch at creation;
    delivery_note_number (surat jalan) is issued from the source branch at
    send time.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.Index("ix_transfers_status_requested", "status", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # TRF/<branch_code>/<YYYY>/<MM>/<NNN>
    transfer_number = db.Column(db.String(64), nullable=False, unique=True)

    # request / send
    type = db.Column(db.String(16), nullable=False, default=TransferType.REQUEST.value)

    from_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    to_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=TransferStatus.PENDING.value, index=True)

    # SJ/<branch_code>/<YYYY>/<MM>/<NNN>, assigned when sent
    delivery_note_number = db.Column(db.String(64), nullable=True, unique=True)

    notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    receiving_notes = db.Column(db.Text, nullable=True)
    # Path/URL of the receiving photo; the file itself is stored elsewhere
    receiving_photo = db.Column(db.String(255), nullable=True)

    # User attribution for accountability
    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sent_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Timestamps for each lifecycle stage
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    from_branch = db.relationship("Branch", foreign_keys=[from_branch_id])
    to_branch = db.relationship("Branch", foreign_keys=[to_branch_id])
    requester = db.relationship("User", foreign_keys=[requested_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    items = db.relationship(
        "TransferItem",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferItem.id",
        lazy=True,
    )

    @property
    def state(self) -> TransferStatus:
        return TransferStatus(self.status)

    @property
    def total_requested(self) -> int:
        return sum(item.quantity_requested for item in self.items)

    def __repr__(self) -> str:
        return f"<Transfer id={self.id} number={self.transfer_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "transfer_number": self.transfer_number,
            "type": self.type,
            "from_branch_id": self.from_branch_id,
            "to_branch_id": self.to_branch_id,
            "status": self.status,
            "status_label": self.state.label,
            "delivery_note_number": self.delivery_note_number,
            "notes": self.notes,
            "rejection_reason": self.rejection_reason,
            "receiving_notes": self.receiving_notes,
            "receiving_photo": self.receiving_photo,
            "requested_by": self.requested_by,
            "approved_by": self.approved_by,
            "sent_by": self.sent_by,
            "received_by": self.received_by,
            "requested_at": to_utc_z(self.requested_at),
            "approved_at": to_utc_z(self.approved_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "sent_at": to_utc_z(self.sent_at),
            "received_at": to_utc_z(self.received_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransferItem(db.Model):
    """
    Line item of a transfer.

    quantity_sent is filled at send time (short shipments allowed) and
    quantity_received at receive time (losses in transit allowed).
    """
    __tablename__ = "transfer_items"
    __table_args__ = (
        db.UniqueConstraint("transfer_id", "product_id", name="uq_transfer_items_transfer_product"),
        db.CheckConstraint("quantity_requested >= 1", name="ck_transfer_items_requested_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(
        db.Integer,
        db.ForeignKey("transfers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity_requested = db.Column(db.Integer, nullable=False)
    quantity_sent = db.Column(db.Integer, nullable=True)
    quantity_received = db.Column(db.Integer, nullable=True)

    transfer = db.relationship("Transfer", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "product_id": self.product_id,
            "quantity_requested": self.quantity_requested,
            "quantity_sent": self.quantity_sent,
            "quantity_received": self.quantity_received,
        }
