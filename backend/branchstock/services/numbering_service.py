# Overview: Per-branch, per-month document numbering for transfers, delivery notes and invoices.

"""
Document number format: <TAG>/<branch_code>/<YYYY>/<MM>/<NNN>

- TRF: transfer number (issued from the source branch at creation)
- SJ:  delivery note number (issued from the source branch at send time)
- INV: invoice number (issued from the selling branch)

The next number is derived from the lexicographically-last existing number
sharing the prefix, incremented and zero-padded to 3 digits; the first
number of a prefix is 001. The lookup runs inside the caller's transaction
under a lock, and the assigning flush runs in a savepoint so a unique
collision can be recovered by recomputing once.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NumberingConflictError, ValidationError
from .concurrency import lock_for_update


TAG_TRANSFER = "TRF"
TAG_DELIVERY_NOTE = "SJ"
TAG_INVOICE = "INV"

SEQUENCE_WIDTH = 3


def number_prefix(tag: str, branch_code: str, at: datetime) -> str:
    if not branch_code:
        raise ValidationError("branch code is required for numbering", field="branch_code", value=branch_code)
    return f"{tag}/{branch_code}/{at.year:04d}/{at.month:02d}/"


def format_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(number: str) -> int:
    """Trailing counter of a document number ("INV/JKT/2024/12/007" -> 7)."""
    return int(number.rsplit("/", 1)[-1])


def next_number(column, tag: str, branch_code: str, at: datetime) -> str:
    """
    Compute the next free number for `column` (e.g. Sale.invoice_number).

    Must be called inside the transaction that inserts the number.
    """
    prefix = number_prefix(tag, branch_code, at)
    last = (
        lock_for_update(
            db.session.query(column)
            .filter(column.startswith(prefix, autoescape=True))
            .order_by(column.desc())
        )
        .limit(1)
        .scalar()
    )
    sequence = parse_sequence(last) + 1 if last else 1
    return format_number(prefix, sequence)


def assign_number(entity, attribute: str, column, *, tag: str, branch_code: str, at: datetime) -> str:
    """
    Set `entity.<attribute>` to the next number and flush it.

    The flush happens in a savepoint: if another transaction committed the
    same number first, the savepoint is rolled back and the number is
    recomputed once. A second collision raises NumberingConflictError.
    """
    # Flush pending work first so a rolled-back savepoint only discards the number
    db.session.flush()

    number = None
    for attempt in range(2):
        number = next_number(column, tag, branch_code, at)
        # Savepoint before setattr: begin_nested() autoflushes, and a persistent
        # entity's UPDATE must land inside the savepoint
        savepoint = db.session.begin_nested()
        try:
            setattr(entity, attribute, number)
            db.session.add(entity)
            db.session.flush()
        except IntegrityError:
            savepoint.rollback()
            current_app.logger.warning(
                "Document number %s already taken (attempt %d), recomputing", number, attempt + 1
            )
            continue
        savepoint.commit()
        return number

    raise NumberingConflictError(number_prefix(tag, branch_code, at), number)
