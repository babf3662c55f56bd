# Overview: Customers, suppliers and employees; plus customer due collection.

"""
Party Service

Plain records for the parties money moves between. The only balance-bearing
party field is Customer.due_amount, which is never written here except by
collect_customer_due (an additive delta).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Customer, Employee, Supplier
from erpmini.time_utils import today
from erpmini.validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    parse_amount,
    parse_date,
    parse_id,
    validate_payload,
)
from .balance_service import (
    adjust_customer_due,
    apply_account_delta,
    get_account_type,
    require_branch,
    require_customer,
    require_employee,
)
from .concurrency import run_atomic
from .ledger_service import record_transaction
from .rollup_service import cash_bank_deltas, upsert_top_sheet


NOTE_DUE_COLLECTION = "Due collection"

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "mobile", "address", "tax_id", "status"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "mobile", "status"},
    required_on_create={"name"},
)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "role", "status", "mobile", "base_salary", "overtime_rate"},
    required_on_create={"name"},
)

EMPLOYEE_ROLES = {"admin", "manager", "salesperson", "worker", "chairman"}


def _create(model, branch_id: int, payload: dict, policy: ModelValidationPolicy):
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)

    def _op():
        require_branch(branch_id)
        row = model(branch_id=branch_id, **patch)
        db.session.add(row)
        db.session.flush()
        return row

    return run_atomic(_op)


# =============================================================================
# CUSTOMERS
# =============================================================================

def create_customer(branch_id: int, payload: dict) -> Customer:
    if payload and payload.get("mobile"):
        mobile = str(payload["mobile"]).strip()
        exists = db.session.query(Customer.id).filter_by(branch_id=branch_id, mobile=mobile).first()
        if exists:
            raise ConflictError("Customer with this mobile already exists", details={"mobile": mobile})
    return _create(Customer, branch_id, payload, CUSTOMER_POLICY)


def get_customer(branch_id: int, customer_id: int) -> Customer:
    return require_customer(branch_id, customer_id)


def list_customers(branch_id: int, *, search: str | None = None, limit: int = 200) -> list[Customer]:
    query = db.session.query(Customer).filter(Customer.branch_id == branch_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(Customer.name.ilike(like) | Customer.mobile.ilike(like))
    return query.order_by(Customer.name.asc()).limit(max(1, limit)).all()


def collect_customer_due(branch_id: int, customer_id: int, payload: Any) -> dict:
    """
    Customer pays against their outstanding due.

    Account credited, due reduced, top sheet cash/bank increased and a payment
    entry appended, all in one unit of work.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    amount = parse_amount(payload.get("amount"), "amount")
    if amount <= 0:
        raise ValidationError("amount must be > 0")
    account_id = parse_id(payload.get("payment_account_id"), "payment_account_id")
    payment_date = parse_date(payload.get("payment_date"), "payment_date", required=False) or today()
    memo_no = payload.get("memo_no")

    def _op() -> dict:
        customer = require_customer(branch_id, customer_id)
        account_type = get_account_type(account_id, branch_id=branch_id)

        apply_account_delta(account_id, amount)
        adjust_customer_due(customer.id, -amount)
        upsert_top_sheet(branch_id, payment_date, **cash_bank_deltas(account_type, amount))
        tx = record_transaction(
            branch_id=branch_id,
            memo_no=str(memo_no).strip() if memo_no else None,
            from_entity_type="customers",
            from_entity_id=customer.id,
            to_entity_type="accounts",
            to_entity_id=account_id,
            amount=amount,
            transaction_type="payment",
            notes=NOTE_DUE_COLLECTION,
        )
        return {"customer_id": customer.id, "amount": amount, "transaction": tx}

    return run_atomic(_op)


# =============================================================================
# SUPPLIERS / EMPLOYEES
# =============================================================================

def create_supplier(branch_id: int, payload: dict) -> Supplier:
    return _create(Supplier, branch_id, payload, SUPPLIER_POLICY)


def list_suppliers(branch_id: int) -> list[Supplier]:
    return (
        db.session.query(Supplier)
        .filter(Supplier.branch_id == branch_id)
        .order_by(Supplier.name.asc())
        .all()
    )


def create_employee(branch_id: int, payload: dict) -> Employee:
    role = (payload or {}).get("role")
    if role is not None and role not in EMPLOYEE_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(EMPLOYEE_ROLES))}",
            details={"role": role},
        )
    return _create(Employee, branch_id, payload, EMPLOYEE_POLICY)


def get_employee(branch_id: int, employee_id: int) -> Employee:
    return require_employee(branch_id, employee_id)


def list_employees(branch_id: int, *, role: str | None = None) -> list[Employee]:
    query = db.session.query(Employee).filter(Employee.branch_id == branch_id)
    if role:
        query = query.filter(Employee.role == role)
    return query.order_by(Employee.name.asc()).all()
