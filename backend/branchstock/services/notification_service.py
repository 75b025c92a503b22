"""
Notification Service - per-role counts of work waiting for the actor

WHY: Clients show a badge of outstanding actions. The counts are computed
from transfers and the stock projection on every call; nothing is stored.

- super_admin: transfers awaiting approval (all branches)
- branch_admin: approved transfers leaving their branch (to send), sent
  transfers arriving at their branch (to receive), and low stock rows at
  their branch
- everyone else: nothing
"""

from __future__ import annotations

from ..extensions import db
from ..enums import TransferStatus
from ..models import BranchStock, Transfer, User


def _empty_counts() -> dict:
    return {"transfers": 0, "low_stock": 0, "total": 0}


def pending_transfer_count() -> int:
    return (
        db.session.query(Transfer)
        .filter(Transfer.status == TransferStatus.PENDING.value)
        .count()
    )


def branch_transfer_count(branch_id: int) -> int:
    """Approved transfers to send from the branch plus sent transfers to receive into it."""
    to_send = (
        db.session.query(Transfer)
        .filter(
            Transfer.from_branch_id == branch_id,
            Transfer.status == TransferStatus.APPROVED.value,
        )
        .count()
    )
    to_receive = (
        db.session.query(Transfer)
        .filter(
            Transfer.to_branch_id == branch_id,
            Transfer.status == TransferStatus.SENT.value,
        )
        .count()
    )
    return to_send + to_receive


def low_stock_count(branch_id: int) -> int:
    return (
        db.session.query(BranchStock)
        .filter(
            BranchStock.branch_id == branch_id,
            BranchStock.quantity <= BranchStock.min_stock,
        )
        .count()
    )


def action_counts(actor: User) -> dict:
    """
    Outstanding action counts for the actor.

    Returns:
        {"transfers": int, "low_stock": int, "total": int}
    """
    counts = _empty_counts()
    if not actor.is_active:
        return counts

    if actor.role == "super_admin":
        counts["transfers"] = pending_transfer_count()
    elif actor.role == "branch_admin" and actor.branch_id is not None:
        counts["transfers"] = branch_transfer_count(actor.branch_id)
        counts["low_stock"] = low_stock_count(actor.branch_id)

    counts["total"] = counts["transfers"] + counts["low_stock"]
    return counts
