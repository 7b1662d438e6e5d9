# Overview: Service-layer transaction boundary; one call == one DB transaction.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, TransactionTimeout
from ..extensions import db

DEFAULT_TIMEOUT_SECONDS = 20.0

# Driver messages that mean "gave up waiting", not "broken database"
_TIMEOUT_MARKERS = (
    "database is locked",
    "statement timeout",
    "canceling statement due to",
    "lock wait timeout",
    "deadlock",
)


def lock_for_update(query):
    """
    Re-read rows with SELECT ... FOR UPDATE, overwriting any stale copies
    already in the session.

    NOTE: SQLite ignores FOR UPDATE (its write lock serializes writers), but
    other DBs will honor it.
    """
    return query.with_for_update().populate_existing()


def _timeout_seconds() -> float:
    return float(current_app.config.get("LEDGER_TRANSACTION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))


def _apply_statement_timeout(timeout: float) -> None:
    # SQLite relies on the busy timeout set in the engine options.
    if db.engine.dialect.name == "postgresql":
        db.session.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))


def _is_timeout(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


def run_atomic(func, *, label: str):
    """
    Run func() as a single database transaction and commit it.

    - Any exception rolls the whole session back and propagates.
    - Lock/statement timeouts, and transactions that outlive
      LEDGER_TRANSACTION_TIMEOUT_SECONDS, become TransactionTimeout.
    - Optimistic-lock conflicts on master records become ConflictError.

    No retries: retry policy belongs to the caller.
    """
    timeout = _timeout_seconds()
    started = time.monotonic()
    try:
        _apply_statement_timeout(timeout)
        result = func()
        elapsed = time.monotonic() - started
        if elapsed > timeout:
            raise TransactionTimeout(
                f"{label} exceeded the {timeout:g}s transaction timeout",
                details={"elapsed_seconds": round(elapsed, 3)},
            )
        db.session.commit()
        return result
    except OperationalError as exc:
        db.session.rollback()
        if _is_timeout(exc):
            current_app.logger.warning("%s timed out: %s", label, exc.orig)
            raise TransactionTimeout(f"{label} timed out waiting for the database") from exc
        raise
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(f"{label} conflicted with a concurrent update") from exc
    except BaseException:
        db.session.rollback()
        raise
