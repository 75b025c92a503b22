from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


# Maximum unit price / discount: 9,999,999,999,999.99 fits Numeric(15, 2)
MAX_MONEY = Decimal("9999999999999.99")
CENTS = Decimal("0.01")


def require_int(value, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings; rejects bools, floats, decimals and
    scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field, value=value)

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field, value=value)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field, value=value)
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field, value=value)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field, value=value)
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field, value=value)
    else:
        raise ValidationError(f"{field} must be an integer", field=field, value=value)

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field=field, value=result)
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be at most {maximum}", field=field, value=result)
    return result


def require_money(value, field: str, *, minimum: Decimal = Decimal("0")) -> Decimal:
    """Coerce to a two-decimal Decimal. Floats go through str() to avoid binary noise."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field, value=value)
    try:
        if isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field, value=value)

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field, value=value)
    if amount != amount.quantize(CENTS, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} must have at most 2 decimal places", field=field, value=value)
    if amount < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field=field, value=value)
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} is too large", field=field, value=value)
    return amount.quantize(CENTS)


def optional_str(value, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, value=value)
    value = value.strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field, value=value)
    return value


def require_str(value, field: str, *, max_length: int | None = None) -> str:
    result = optional_str(value, field, max_length=max_length)
    if result is None:
        raise ValidationError(f"{field} is required", field=field, value=value)
    return result


def require_choice(value, field: str, enum_cls):
    member = enum_cls.parse(value)
    if member is None:
        raise ValidationError(
            f"{field} must be one of: {', '.join(enum_cls.values())}",
            field=field,
            value=value,
        )
    return member


def require_items(items, field: str = "items") -> list:
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError(f"{field} must contain at least one item", field=field, value=None)
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{field}.{index} must be an object", field=f"{field}.{index}", value=None)
    return list(items)


def quantity_overrides(raw, field: str) -> dict[int, int]:
    """
    Normalize per-item quantity overrides.

    Accepts either a mapping {item_id: quantity} or a list of
    {"id": item_id, "<field>": quantity} objects (the HTTP payload shape).
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        pairs = raw.items()
    elif isinstance(raw, (list, tuple)):
        pairs = []
        for index, entry in enumerate(raw):
            if not isinstance(entry, dict) or "id" not in entry or field not in entry:
                raise ValidationError(
                    f"items.{index} must have 'id' and '{field}'",
                    field=f"items.{index}",
                    value=None,
                )
            pairs.append((entry["id"], entry[field]))
    else:
        raise ValidationError("items must be a list or mapping", field="items", value=None)

    return {
        require_int(item_id, "items.id", minimum=1): require_int(qty, f"items.{field}", minimum=0)
        for item_id, qty in pairs
    }


def format_money(amount) -> str | None:
    """Serialize a money value as a fixed two-decimal string."""
    if amount is None:
        return None
    return str(Decimal(amount).quantize(CENTS))
