# Overview: Domain error hierarchy shared by services and routes.

"""
Every core operation is all-or-nothing: an error raised from inside a unit of
work rolls the whole transaction back. Errors carry structured `details`
(entity ids, field names, offending values) so callers can build their own
user-facing messages.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for inventory domain errors."""

    code = "inventory_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
        }


class ValidationError(InventoryError):
    """Malformed input, rejected before any write."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: str | None = None, value=None, details: dict | None = None):
        merged = dict(details or {})
        if field is not None:
            merged.setdefault("field", field)
            merged.setdefault("value", value if _is_plain(value) else str(value))
        super().__init__(message, merged)
        self.field = field


class NotFoundError(InventoryError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(InventoryError):
    code = "permission_denied"
    status_code = 403

    def __init__(self, user_id: int | None, permission_code: str):
        super().__init__(
            f"User {user_id} lacks permission {permission_code}",
            {"user_id": user_id, "required_permission": permission_code},
        )
        self.permission_code = permission_code


class InsufficientStockError(InventoryError):
    """A decrement would drive BranchStock.quantity below zero."""

    code = "insufficient_stock"
    status_code = 409

    def __init__(self, branch_id: int, product_id: int, requested: int, available: int, sku: str | None = None):
        label = sku or product_id
        super().__init__(
            f"Insufficient stock for product {label} at branch {branch_id}. "
            f"Available: {available}, requested: {requested}",
            {
                "branch_id": branch_id,
                "product_id": product_id,
                "sku": sku,
                "requested": requested,
                "available": available,
            },
        )
        self.branch_id = branch_id
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransferStateError(InventoryError):
    code = "invalid_transfer_state"
    status_code = 409

    def __init__(self, transfer_id: int, current: str, required):
        if isinstance(required, (list, tuple, set, frozenset)):
            required = sorted(str(r) for r in required)
            required_text = " or ".join(required)
        else:
            required = str(required)
            required_text = required
        super().__init__(
            f"Transfer {transfer_id} is {current}; operation requires {required_text}",
            {"transfer_id": transfer_id, "current": str(current), "required": required},
        )
        self.transfer_id = transfer_id
        self.current = str(current)
        self.required = required


class NumberingConflictError(InventoryError):
    """Document number collided twice under concurrent creation."""

    code = "numbering_conflict"
    status_code = 409

    def __init__(self, prefix: str, number: str):
        super().__init__(
            f"Could not allocate a unique number for prefix {prefix} (last tried {number})",
            {"prefix": prefix, "number": number},
        )


class LedgerImmutabilityError(InventoryError):
    """Stock movements are append-only."""

    code = "ledger_immutable"
    status_code = 409


def _is_plain(value) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))
