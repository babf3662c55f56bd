# Overview: Additive balance primitives for accounts, customer due and product stock.

"""
Ledger store primitives.

INVARIANTS:
- Balance-bearing columns (accounts.current_balance, customers.due_amount,
  products.quantity) are only changed by a single UPDATE ... SET col = col + :delta.
- No caller reads an absolute balance and writes it back.
- A zero delta is a no-op and does not touch the row.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import update

from ..extensions import db
from ..models import Account, Branch, Customer, Employee, Product
from ..models.accounts import ACCOUNT_TYPE_CASH
from erpmini.validation import NotFoundError


def _apply_delta(model, row_id: int, column: str, delta, label: str) -> None:
    if not delta:
        return
    col = getattr(model, column)
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values({column: col + delta})
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise NotFoundError(f"{label} not found", details={f"{label.lower()}_id": row_id})


def apply_account_delta(account_id: int, amount: Decimal) -> None:
    """Credit (positive) or debit (negative) an account balance."""
    _apply_delta(Account, account_id, "current_balance", amount, "Account")


def adjust_customer_due(customer_id: int, delta: Decimal) -> None:
    _apply_delta(Customer, customer_id, "due_amount", delta, "Customer")


def adjust_stock(product_id: int, delta: int) -> None:
    _apply_delta(Product, product_id, "quantity", delta, "Product")


def get_account_type(account_id: int, *, branch_id: int | None = None) -> str:
    """Return "cash" or "bank" for an account, optionally scoped to a branch."""
    query = db.session.query(Account.type).filter(Account.id == account_id)
    if branch_id is not None:
        query = query.filter(Account.branch_id == branch_id)
    account_type = query.scalar()
    if account_type is None:
        raise NotFoundError("Account not found", details={"account_id": account_id})
    return account_type


def get_branch_cash_account(branch_id: int) -> Account:
    """First cash account of the branch; expenses (purchases, salary) are paid from it."""
    account = (
        db.session.query(Account)
        .filter_by(branch_id=branch_id, type=ACCOUNT_TYPE_CASH)
        .order_by(Account.id.asc())
        .first()
    )
    if not account:
        raise NotFoundError("Branch has no cash account", details={"branch_id": branch_id})
    return account


# =============================================================================
# REFERENCE LOOKUPS (branch scoped)
# =============================================================================

def require_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch:
        raise NotFoundError("Branch not found", details={"branch_id": branch_id})
    return branch


def require_customer(branch_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, branch_id=branch_id).first()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def require_employee(branch_id: int, employee_id: int) -> Employee:
    employee = db.session.query(Employee).filter_by(id=employee_id, branch_id=branch_id).first()
    if not employee:
        raise NotFoundError("Employee not found", details={"employee_id": employee_id})
    return employee


def require_products(branch_id: int, product_ids) -> dict[int, Product]:
    wanted = set(product_ids)
    if not wanted:
        return {}
    rows = (
        db.session.query(Product)
        .filter(Product.branch_id == branch_id, Product.id.in_(wanted))
        .all()
    )
    found = {p.id: p for p in rows}
    missing = sorted(wanted - set(found))
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    return found
