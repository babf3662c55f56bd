# Overview: Material purchases paid from the branch cash account.

"""
Purchase Service

A purchase debits the branch cash account and is booked as top sheet
expense. Editing a purchase posts only the signed difference and appends an
adjustment entry; the initial payment entry is left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Purchase, Supplier
from erpmini.time_utils import today
from erpmini.validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    parse_amount,
    parse_date,
    parse_id,
)
from .balance_service import apply_account_delta, get_branch_cash_account, require_branch
from .concurrency import lock_for_update, run_atomic
from .document_service import flush_document, next_memo_number
from .ledger_service import record_transaction
from .rollup_service import upsert_top_sheet


NOTE_PURCHASE = "Payment for Material Purchase"
NOTE_PURCHASE_ADJUSTMENT = "Material purchase adjusted"


@dataclass
class PurchaseInput:
    memo_no: str | None = None
    purchase_date: date | None = None
    supplier_id: int | None = None
    total_amount: Decimal | None = None
    notes: str | None = None
    fields: frozenset = frozenset()


PURCHASE_FIELDS = {"memo_no", "purchase_date", "supplier_id", "total_amount", "notes"}


def parse_purchase_payload(payload: Any, *, partial: bool = False) -> PurchaseInput:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - PURCHASE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    data = PurchaseInput(fields=frozenset(payload))
    if not partial:
        for required in ("supplier_id", "total_amount"):
            if required not in payload:
                raise ValidationError(f"{required} is required")

    if payload.get("memo_no") is not None:
        data.memo_no = str(payload["memo_no"]).strip() or None
    if "purchase_date" in payload:
        data.purchase_date = parse_date(payload.get("purchase_date"), "purchase_date", required=False)
    if "supplier_id" in payload:
        data.supplier_id = parse_id(payload.get("supplier_id"), "supplier_id")
    if "total_amount" in payload:
        data.total_amount = parse_amount(payload.get("total_amount"), "total_amount")
    if "notes" in payload:
        notes = payload.get("notes")
        data.notes = str(notes).strip() if notes is not None else None
    return data


def _require_supplier(branch_id: int, supplier_id: int):
    supplier = db.session.query(Supplier).filter_by(id=supplier_id, branch_id=branch_id).first()
    if not supplier:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def create_purchase(branch_id: int, payload: Any) -> Purchase:
    data = parse_purchase_payload(payload)

    def _op() -> Purchase:
        require_branch(branch_id)
        _require_supplier(branch_id, data.supplier_id)
        cash = get_branch_cash_account(branch_id)

        if data.memo_no:
            if db.session.query(Purchase.id).filter_by(branch_id=branch_id, memo_no=data.memo_no).first():
                raise ConflictError("Memo number already exists", details={"memo_no": data.memo_no})
            memo_no = data.memo_no
        else:
            memo_no = next_memo_number(branch_id=branch_id, document_type="PURCHASE")

        purchase = Purchase(
            branch_id=branch_id,
            memo_no=memo_no,
            purchase_date=data.purchase_date or today(),
            supplier_id=data.supplier_id,
            total_amount=data.total_amount,
            notes=data.notes,
        )
        db.session.add(purchase)
        flush_document(memo_no)

        if data.total_amount > 0:
            apply_account_delta(cash.id, -data.total_amount)
            upsert_top_sheet(branch_id, purchase.purchase_date, expense=data.total_amount)
            record_transaction(
                branch_id=branch_id,
                memo_no=memo_no,
                from_entity_type="accounts",
                from_entity_id=cash.id,
                to_entity_type="suppliers",
                to_entity_id=data.supplier_id,
                amount=data.total_amount,
                transaction_type="payment",
                notes=NOTE_PURCHASE,
            )
        return purchase

    return run_atomic(_op)


def update_purchase(branch_id: int, purchase_id: int, payload: Any) -> Purchase:
    data = parse_purchase_payload(payload, partial=True)

    def _op() -> Purchase:
        purchase = lock_for_update(
            db.session.query(Purchase).filter_by(id=purchase_id, branch_id=branch_id)
        ).first()
        if not purchase:
            raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
        if data.memo_no is not None and data.memo_no != purchase.memo_no:
            raise ValidationError("memo_no cannot be changed", details={"memo_no": purchase.memo_no})

        old_total = Decimal(purchase.total_amount)
        old_date = purchase.purchase_date
        old_supplier_id = purchase.supplier_id

        if "supplier_id" in data.fields and data.supplier_id != old_supplier_id:
            _require_supplier(branch_id, data.supplier_id)
            purchase.supplier_id = data.supplier_id
        if "purchase_date" in data.fields and data.purchase_date:
            purchase.purchase_date = data.purchase_date
        if data.total_amount is not None:
            purchase.total_amount = data.total_amount
        if "notes" in data.fields:
            purchase.notes = data.notes
        db.session.flush()

        new_total = Decimal(purchase.total_amount)
        diff = new_total - old_total
        cash = get_branch_cash_account(branch_id)
        apply_account_delta(cash.id, -diff)

        if purchase.purchase_date == old_date:
            upsert_top_sheet(branch_id, old_date, expense=diff)
        else:
            upsert_top_sheet(branch_id, old_date, expense=-old_total)
            upsert_top_sheet(branch_id, purchase.purchase_date, expense=new_total)

        if purchase.supplier_id == old_supplier_id:
            ledger_deltas = {old_supplier_id: diff}
        else:
            ledger_deltas = {old_supplier_id: -old_total, purchase.supplier_id: new_total}
        for supplier_id, delta in ledger_deltas.items():
            if not delta:
                continue
            record_transaction(
                branch_id=branch_id,
                memo_no=purchase.memo_no,
                from_entity_type="accounts",
                from_entity_id=cash.id,
                to_entity_type="suppliers",
                to_entity_id=supplier_id,
                amount=delta,
                transaction_type="adjustment",
                notes=NOTE_PURCHASE_ADJUSTMENT,
            )
        return purchase

    return run_atomic(_op)


def list_purchases(
    branch_id: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    supplier_id: int | None = None,
    limit: int = 200,
) -> list[Purchase]:
    query = db.session.query(Purchase).filter(Purchase.branch_id == branch_id)
    if start_date:
        query = query.filter(Purchase.purchase_date >= start_date)
    if end_date:
        query = query.filter(Purchase.purchase_date <= end_date)
    if supplier_id:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return query.order_by(Purchase.id.desc()).limit(max(1, limit)).all()
