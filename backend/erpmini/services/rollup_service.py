# Overview: Additive upserts for the daily top sheet and employee progress rows.

"""
Daily rollup primitives.

INVARIANTS:
- A (branch, date) top sheet row and a (date, employee) progress row come
  into existence on first touch; callers never create them directly.
- Every field is incremented by a signed delta in SQL. Concurrent writers on
  the same key both land because the database serializes the UPDATEs.
- First touch inserts inside a SAVEPOINT. If a concurrent writer inserted the
  same key first, the savepoint is rolled back and the additive UPDATE retried.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TopSheet, EmployeeProgress
from ..models.accounts import ACCOUNT_TYPE_BANK, ACCOUNT_TYPE_CASH
from ..models.rollups import (
    PROGRESS_COUNT_FIELDS,
    PROGRESS_MONEY_FIELDS,
    TOP_SHEET_COUNT_FIELDS,
    TOP_SHEET_MONEY_FIELDS,
)


TOP_SHEET_FIELDS = set(TOP_SHEET_COUNT_FIELDS) | set(TOP_SHEET_MONEY_FIELDS)
PROGRESS_FIELDS = set(PROGRESS_COUNT_FIELDS) | set(PROGRESS_MONEY_FIELDS)


def cash_bank_deltas(account_type: str | None, amount: Decimal) -> dict:
    """Route an amount into the top sheet cash or bank field by account type."""
    if not amount or account_type is None:
        return {}
    if account_type == ACCOUNT_TYPE_CASH:
        return {"cash": amount}
    if account_type == ACCOUNT_TYPE_BANK:
        return {"bank": amount}
    raise ValueError(f"Unknown account type '{account_type}'")


def _additive_upsert(model, *, key: dict, insert_extra: dict, deltas: dict, allowed: set) -> None:
    unknown = sorted(set(deltas) - allowed)
    if unknown:
        raise ValueError(f"Unknown {model.__tablename__} fields: {', '.join(unknown)}")

    deltas = {field: value for field, value in deltas.items() if value}
    if not deltas:
        return

    stmt = (
        update(model)
        .where(*[getattr(model, k) == v for k, v in key.items()])
        .values({field: getattr(model, field) + value for field, value in deltas.items()})
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount:
        return

    try:
        with db.session.begin_nested():
            db.session.add(model(**key, **insert_extra, **deltas))
    except IntegrityError:
        # Lost the first-touch race: the row exists now, add to it
        if not db.session.execute(stmt).rowcount:
            raise


def upsert_top_sheet(branch_id: int, sheet_date: date, **deltas) -> None:
    """
    Add signed deltas to the branch top sheet for sheet_date.

    Accepted fields: pending, checkout, delivery, cancelled, order_count,
    ready_made, cash, bank, expense.
    """
    _additive_upsert(
        TopSheet,
        key={"branch_id": branch_id, "sheet_date": sheet_date},
        insert_extra={},
        deltas=deltas,
        allowed=TOP_SHEET_FIELDS,
    )


def upsert_progress(sheet_date: date, employee_id: int, branch_id: int, **deltas) -> None:
    """Add signed deltas to an employee's progress row for sheet_date."""
    _additive_upsert(
        EmployeeProgress,
        key={"sheet_date": sheet_date, "employee_id": employee_id},
        insert_extra={"branch_id": branch_id},
        deltas=deltas,
        allowed=PROGRESS_FIELDS,
    )
