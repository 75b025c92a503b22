# Overview: Closed value sets for status and type columns, with display metadata.

from __future__ import annotations

from enum import Enum


class _LabeledEnum(str, Enum):
    """String-valued enum whose variants carry a display label."""

    @property
    def label(self) -> str:
        return self._labels()[self]

    @classmethod
    def _labels(cls) -> dict:
        # Base class only (EnumMeta rules out ABCMeta); every subclass maps all members
        raise NotImplementedError

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def options(cls) -> list[dict]:
        return [{"value": member.value, "label": member.label} for member in cls]

    @classmethod
    def parse(cls, value):
        """Return the member for `value`, or None when it is not a known value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class PaymentMethod(_LabeledEnum):
    CASH = "cash"
    TRANSFER = "transfer"
    DEBIT = "debit"

    @classmethod
    def _labels(cls) -> dict:
        return {
            cls.CASH: "Cash",
            cls.TRANSFER: "Bank Transfer",
            cls.DEBIT: "Debit Card",
        }


class StockMovementType(_LabeledEnum):
    IN = "in"
    OUT = "out"

    @classmethod
    def _labels(cls) -> dict:
        return {
            cls.IN: "Stock In",
            cls.OUT: "Stock Out",
        }

    @property
    def color(self) -> str:
        return {
            StockMovementType.IN: "green",
            StockMovementType.OUT: "red",
        }[self]

    @property
    def sign(self) -> int:
        return 1 if self is StockMovementType.IN else -1


class StockReferenceType(_LabeledEnum):
    SALE = "sale"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"
    INITIAL = "initial"

    @classmethod
    def _labels(cls) -> dict:
        return {
            cls.SALE: "Sale",
            cls.TRANSFER_IN: "Transfer In",
            cls.TRANSFER_OUT: "Transfer Out",
            cls.ADJUSTMENT: "Adjustment",
            cls.INITIAL: "Initial Stock",
        }


class TransferStatus(_LabeledEnum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT = "sent"
    RECEIVED = "received"

    @classmethod
    def _labels(cls) -> dict:
        return {
            cls.DRAFT: "Draft",
            cls.PENDING: "Awaiting Approval",
            cls.APPROVED: "Approved",
            cls.REJECTED: "Rejected",
            cls.SENT: "Sent",
            cls.RECEIVED: "Received",
        }

    @property
    def color(self) -> str:
        return {
            TransferStatus.DRAFT: "gray",
            TransferStatus.PENDING: "yellow",
            TransferStatus.APPROVED: "blue",
            TransferStatus.REJECTED: "red",
            TransferStatus.SENT: "purple",
            TransferStatus.RECEIVED: "green",
        }[self]

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.REJECTED, TransferStatus.RECEIVED)

    @property
    def is_deletable(self) -> bool:
        return self in (TransferStatus.DRAFT, TransferStatus.PENDING)


class TransferType(_LabeledEnum):
    # REQUEST: the requesting branch pulls stock from another branch
    # SEND: the requesting branch pushes its own stock to another branch
    REQUEST = "request"
    SEND = "send"

    @classmethod
    def _labels(cls) -> dict:
        return {
            cls.REQUEST: "Request Stock",
            cls.SEND: "Send Stock",
        }


ALL_ENUMS = {
    "payment_methods": PaymentMethod,
    "movement_types": StockMovementType,
    "reference_types": StockReferenceType,
    "transfer_statuses": TransferStatus,
    "transfer_types": TransferType,
}
