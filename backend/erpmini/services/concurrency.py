# Overview: Unit-of-work helpers shared by every lifecycle service.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Lock the selected header row (order, sale, purchase) for the rest of the
    unit of work. SQLite ignores FOR UPDATE; there the whole unit of work is
    serialized by begin_write() instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """Take the SQLite write lock up front so savepoints nest inside a real transaction."""
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_atomic(func):
    """
    Execute func() as one all-or-nothing unit of work.

    Commits when func returns, rolls back and re-raises on any exception.
    There is no retry: a failed lifecycle call is reported to the caller, who
    may resubmit once they know nothing was committed.
    """
    try:
        begin_write()
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise
