"""
supplier_ledger/services/transactions.py

Transaction boundary and result mapping for the ledger services.

- run_in_transaction(work): executes a unit of work, commits it, and re-runs it
  on optimistic-concurrency conflicts (StaleDataError raised through
  version_id_col) or database lock contention. Any other error rolls back and
  propagates. Nothing is ever partially committed.
- service_operation: decorator for public service functions. Converts domain
  errors and unexpected storage errors into the uniform
  {"success": False, "error": ..., "error_type": ...} result.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import LedgerServiceError, TransactionConflictError
from ..extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
RETRYABLE_PGCODES = {"40001", "40P01"}


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in RETRYABLE_PGCODES:
            return True
        return "database is locked" in str(exc.orig).lower()
    return False


def run_in_transaction(work: Callable[[], T], *, retries: int | None = None) -> T:
    """
    Run `work` as one atomic transaction and return its result.

    `work` must do all reads it depends on itself (it is re-executed from scratch
    after a conflict) and must not commit. `retries` is the total number of
    attempts (LEDGER_TRANSACTION_RETRIES when None); work always runs at least once.
    """
    if retries is None:
        retries = current_app.config.get("LEDGER_TRANSACTION_RETRIES", 3)
    attempts = max(1, int(retries))
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.session.commit()
            return result
        except (StaleDataError, OperationalError) as exc:
            db.session.rollback()
            if not _is_retryable(exc):
                raise
            last_error = exc
            logger.warning(
                "Ledger transaction conflict, retrying",
                extra={"attempt": attempt, "attempts": attempts},
            )
        except Exception:
            db.session.rollback()
            raise

    raise TransactionConflictError(
        f"The operation conflicted with concurrent updates {attempts} times. Please retry."
    ) from last_error


def service_operation(description: str) -> Callable[[Callable[..., dict]], Callable[..., dict]]:
    """Decorator: map exceptions escaping a service function into a failed result."""

    def decorator(func: Callable[..., dict]) -> Callable[..., dict]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return func(*args, **kwargs)
            except LedgerServiceError as exc:
                db.session.rollback()
                logger.warning(
                    "Error %s: %s",
                    description,
                    exc,
                    extra={"error_type": exc.code},
                )
                return {"success": False, "error": str(exc), "error_type": exc.code}
            except Exception as exc:
                db.session.rollback()
                logger.exception("Unexpected failure %s", description)
                return {
                    "success": False,
                    "error": f"Error {description}: {exc}",
                    "error_type": "error",
                }

        return wrapper

    return decorator
