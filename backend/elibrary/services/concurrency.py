# Overview: Transaction helpers shared by the circulation and payment engines.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def resolve_session(session=None):
    """Engines take an explicit session; fall back to the app-scoped one."""
    return session if session is not None else db.session


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Book and PrintJob also carry version_id_col, so a lost race shows up as
    StaleDataError on flush even where the lock is a no-op.
    populate_existing() forces a re-read of rows already in the identity map.
    """
    return query.populate_existing().with_for_update()


def run_with_retry(func, *, session=None, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work that ends in commit(), all-or-nothing.

    Any exception rolls the session back before it propagates. Retries on
    OperationalError (deadlocks, locks) and StaleDataError (optimistic
    locking conflicts); func must therefore re-read the rows it checks.
    """
    session = resolve_session(session)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
    if last_exc:
        raise last_exc
