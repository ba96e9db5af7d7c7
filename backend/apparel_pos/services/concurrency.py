# Overview: Optimistic-transaction helpers shared by the payment, stock, and order services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, EngineError, StoreUnavailableError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id compare-and-set still catches lost races on SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    - StaleDataError (version_id compare-and-set lost) and IntegrityError
      (duplicate append) are retried, then surface as ConflictError.
    - OperationalError (locks, timeouts) is retried, then surfaces as
      StoreUnavailableError.
    - EngineError subclasses roll back and propagate unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("STORE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("STORE_RETRY_BACKOFF_SECONDS", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except EngineError:
            db.session.rollback()
            raise
        except (StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ConflictError("Concurrent update detected; please retry") from exc
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StoreUnavailableError("Store is busy or unavailable; please retry") from exc
        time.sleep(backoff_base * (2 ** attempt))
    raise StoreUnavailableError("Store operation was not attempted")
