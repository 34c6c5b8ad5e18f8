# Overview: Transaction helpers shared by the write paths (stock-in, checkout, numbering).

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Errors worth retrying: lock timeouts, deadlocks, dropped connections
TRANSIENT_ERRORS = (OperationalError, StaleDataError)


def is_sqlite(session=None) -> bool:
    session = session or db.session
    return session.get_bind().dialect.name == "sqlite"


def begin_write(session=None) -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks; BEGIN IMMEDIATE serializes writers so a
    read-check-write sequence cannot interleave with another one. Other
    engines rely on the row locks taken by conditional UPDATEs.
    """
    session = session or db.session
    if not is_sqlite(session):
        return
    dbapi_conn = session.connection().connection.dbapi_connection
    if getattr(dbapi_conn, "in_transaction", False):
        # Already holding a write transaction from an earlier statement
        return
    session.execute(text("BEGIN IMMEDIATE"))


def backoff_delay(attempt: int, backoff_base: float = 0.1) -> float:
    return backoff_base * (2 ** attempt)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation, retrying on transient concurrency failures.

    The session is rolled back before each retry; the last error is
    re-raised once attempts are exhausted.
    """
    for attempt in range(attempts):
        try:
            return func()
        except TRANSIENT_ERRORS:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_delay(attempt, backoff_base))
