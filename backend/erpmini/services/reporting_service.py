# Overview: Read-only reports over the daily rollups.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import EmployeeProgress, TopSheet
from ..models.rollups import (
    PROGRESS_COUNT_FIELDS,
    PROGRESS_MONEY_FIELDS,
    TOP_SHEET_COUNT_FIELDS,
    TOP_SHEET_MONEY_FIELDS,
)
from erpmini.validation import ValidationError, format_amount


def _check_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")


def _totals(rows, count_fields, money_fields) -> dict:
    totals: dict = {f: 0 for f in count_fields}
    money = {f: Decimal("0") for f in money_fields}
    for row in rows:
        for f in count_fields:
            totals[f] += getattr(row, f) or 0
        for f in money_fields:
            money[f] += Decimal(getattr(row, f) or 0)
    totals.update({f: format_amount(v) for f, v in money.items()})
    return totals


def top_sheet_report(branch_id: int, *, start_date: date | None = None, end_date: date | None = None) -> dict:
    """Daily top sheet rows for the branch plus column totals over the range."""
    _check_range(start_date, end_date)
    query = db.session.query(TopSheet).filter(TopSheet.branch_id == branch_id)
    if start_date:
        query = query.filter(TopSheet.sheet_date >= start_date)
    if end_date:
        query = query.filter(TopSheet.sheet_date <= end_date)
    rows = query.order_by(TopSheet.sheet_date.asc()).all()
    return {
        "rows": [r.to_dict() for r in rows],
        "totals": _totals(rows, TOP_SHEET_COUNT_FIELDS, TOP_SHEET_MONEY_FIELDS),
    }


def get_top_sheet(branch_id: int, sheet_date: date) -> TopSheet | None:
    return db.session.query(TopSheet).filter_by(branch_id=branch_id, sheet_date=sheet_date).first()


def employee_progress_report(
    branch_id: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    employee_id: int | None = None,
) -> dict:
    _check_range(start_date, end_date)
    query = db.session.query(EmployeeProgress).filter(EmployeeProgress.branch_id == branch_id)
    if employee_id:
        query = query.filter(EmployeeProgress.employee_id == employee_id)
    if start_date:
        query = query.filter(EmployeeProgress.sheet_date >= start_date)
    if end_date:
        query = query.filter(EmployeeProgress.sheet_date <= end_date)
    rows = query.order_by(EmployeeProgress.sheet_date.asc(), EmployeeProgress.employee_id.asc()).all()
    return {
        "rows": [r.to_dict() for r in rows],
        "totals": _totals(rows, PROGRESS_COUNT_FIELDS, PROGRESS_MONEY_FIELDS),
    }


def get_progress(employee_id: int, sheet_date: date) -> EmployeeProgress | None:
    return db.session.query(EmployeeProgress).filter_by(employee_id=employee_id, sheet_date=sheet_date).first()
