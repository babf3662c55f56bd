# Overview: Branches and their cash/bank accounts.

from __future__ import annotations

from ..extensions import db
from ..models import Account, Branch
from ..models.accounts import ACCOUNT_TYPES
from erpmini.validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .balance_service import require_branch
from .concurrency import run_atomic


BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code"},
    required_on_create={"name"},
)

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type", "current_balance"},
    required_on_create={"name", "type"},
)


def create_branch(payload: dict) -> Branch:
    patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)

    def _op() -> Branch:
        if db.session.query(Branch.id).filter_by(name=patch["name"]).first():
            raise ConflictError("Branch name already exists", details={"name": patch["name"]})
        if patch.get("code") and db.session.query(Branch.id).filter_by(code=patch["code"]).first():
            raise ConflictError("Branch code already exists", details={"code": patch["code"]})
        branch = Branch(**patch)
        db.session.add(branch)
        db.session.flush()
        return branch

    return run_atomic(_op)


def list_branches() -> list[Branch]:
    return db.session.query(Branch).order_by(Branch.id.asc()).all()


def create_account(branch_id: int, payload: dict) -> Account:
    """
    Open a cash or bank account. current_balance is the opening balance; from
    then on the balance only moves through additive deltas.
    """
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=False)
    if patch["type"] not in ACCOUNT_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(ACCOUNT_TYPES)}",
            details={"type": patch["type"]},
        )

    def _op() -> Account:
        require_branch(branch_id)
        account = Account(branch_id=branch_id, **patch)
        db.session.add(account)
        db.session.flush()
        return account

    return run_atomic(_op)


def list_accounts(branch_id: int, *, account_type: str | None = None) -> list[Account]:
    query = db.session.query(Account).filter(Account.branch_id == branch_id)
    if account_type:
        query = query.filter(Account.type == account_type)
    return query.order_by(Account.id.asc()).all()


def get_account(branch_id: int, account_id: int) -> Account:
    account = db.session.query(Account).filter_by(id=account_id, branch_id=branch_id).first()
    if not account:
        raise NotFoundError("Account not found", details={"account_id": account_id})
    return account
