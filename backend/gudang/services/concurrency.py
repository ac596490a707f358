# Overview: Transaction helpers for ledger writes; row locks plus retry on lock/version conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class RetryableError(Exception):
    """A ledger write lost a concurrency race on every attempt; nothing was committed."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Product and OutletStock also carry a version_id column, so a stale
    write raises StaleDataError even where row locks are not honored.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func() as one read-validate-write unit and commit.

    Any exception rolls the session back, so callers never observe a
    half-applied operation. OperationalError (deadlocks, locks),
    StaleDataError (optimistic version conflicts) and IntegrityError (two
    writers inserting the same first outlet balance row) are retried with
    exponential backoff; exhausting the budget raises RetryableError.
    Domain errors (validation, not-found, insufficient stock) propagate
    unchanged on the first attempt.
    """
    if attempts is None:
        attempts = current_app.config.get("TX_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TX_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (IntegrityError, OperationalError, StaleDataError) as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Ledger transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            if attempt >= attempts - 1:
                raise RetryableError("Stock changed concurrently, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
