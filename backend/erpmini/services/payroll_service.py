# Overview: Salary submission and worker daily progress.

from __future__ import annotations

from decimal import Decimal
from typing import Any

from erpmini.time_utils import today
from erpmini.validation import (
    ValidationError,
    parse_amount,
    parse_date,
    parse_quantity,
)
from .balance_service import apply_account_delta, get_branch_cash_account, require_employee
from .concurrency import run_atomic
from .ledger_service import record_transaction
from .rollup_service import upsert_progress, upsert_top_sheet


NOTE_SALARY = "Salary payment"
NOTE_WORKER_ADVANCE = "Advance payment to worker"


def _payload_dict(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def submit_salary(branch_id: int, employee_id: int, payload: Any):
    """
    Pay an employee's salary from the branch cash account.

    Cash debited, salary entry appended (accounts -> employees), top sheet
    expense and the employee's progress salary increased.
    """
    payload = _payload_dict(payload)
    amount = parse_amount(payload.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    salary_date = parse_date(payload.get("salary_date"), "salary_date", required=False) or today()
    memo_no = payload.get("memo_no")
    notes = payload.get("notes") or NOTE_SALARY

    def _op():
        employee = require_employee(branch_id, employee_id)
        cash = get_branch_cash_account(branch_id)

        apply_account_delta(cash.id, -amount)
        tx = record_transaction(
            branch_id=branch_id,
            memo_no=str(memo_no).strip() if memo_no else None,
            from_entity_type="accounts",
            from_entity_id=cash.id,
            to_entity_type="employees",
            to_entity_id=employee.id,
            amount=amount,
            transaction_type="salary",
            notes=str(notes)[:255],
        )
        upsert_top_sheet(branch_id, salary_date, expense=amount)
        upsert_progress(salary_date, employee.id, branch_id, salary=amount)
        return tx

    return run_atomic(_op)


def record_worker_progress(branch_id: int, employee_id: int, payload: Any) -> dict:
    """
    Add a worker's daily production units, overtime hours and advance payment.

    An advance payment is paid from the branch cash account and booked as
    expense.
    """
    payload = _payload_dict(payload)
    sheet_date = parse_date(payload.get("sheet_date"), "sheet_date", required=False) or today()
    units = parse_quantity(payload.get("production_units", 0), "production_units", allow_zero=True)
    overtime = parse_amount(payload.get("overtime_hours"), "overtime_hours", default=Decimal("0.00"))
    advance = parse_amount(payload.get("advance_payment"), "advance_payment", default=Decimal("0.00"))
    if not units and not overtime and not advance:
        raise ValidationError("Nothing to record")

    def _op() -> dict:
        employee = require_employee(branch_id, employee_id)
        upsert_progress(
            sheet_date,
            employee.id,
            branch_id,
            production_units=units,
            overtime_hours=overtime,
            advance_payment=advance,
        )
        tx = None
        if advance > 0:
            cash = get_branch_cash_account(branch_id)
            apply_account_delta(cash.id, -advance)
            upsert_top_sheet(branch_id, sheet_date, expense=advance)
            tx = record_transaction(
                branch_id=branch_id,
                memo_no=None,
                from_entity_type="accounts",
                from_entity_id=cash.id,
                to_entity_type="employees",
                to_entity_id=employee.id,
                amount=advance,
                transaction_type="payment",
                notes=NOTE_WORKER_ADVANCE,
            )
        return {
            "employee_id": employee.id,
            "sheet_date": sheet_date,
            "production_units": units,
            "overtime_hours": overtime,
            "advance_payment": advance,
            "transaction": tx,
        }

    return run_atomic(_op)
