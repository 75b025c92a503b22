# Overview: Transaction boundaries, row locking and retry for service-layer writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there, writers are serialized
    by BEGIN IMMEDIATE (see extensions.py), other DBs honor the row lock.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute `func` as one unit of work: commit on success, roll back on any
    exception so no partial ledger entries or documents persist.

    Retries the whole unit on OperationalError (deadlocks, lock timeouts) and
    StaleDataError (optimistic locking conflicts). Domain errors are never
    retried.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying transaction after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
