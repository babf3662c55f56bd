"""
Sales Service - immediate ready-made sales

WHY: A sale has no lifecycle and no item-level diffing. Its effects (stock,
payment account, customer due, top sheet, salesperson progress) are described
once in apply_sale_effects; reverse_sale_effects is the exact negation. An
edit is reverse(old) followed by apply(new) inside one unit of work, so
resubmitting the same sale is a no-op on every aggregate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Product, Sale, SoldItem
from erpmini.time_utils import today
from erpmini.validation import (
    ConflictError,
    LineItem,
    NotFoundError,
    ValidationError,
    parse_amount,
    parse_date,
    parse_id,
    parse_line_items,
)
from .balance_service import (
    adjust_customer_due,
    adjust_stock,
    apply_account_delta,
    get_account_type,
    require_branch,
    require_customer,
    require_employee,
    require_products,
)
from .concurrency import lock_for_update, run_atomic
from .document_service import flush_document, next_memo_number
from .ledger_service import record_transaction
from .rollup_service import cash_bank_deltas, upsert_progress, upsert_top_sheet


ZERO = Decimal("0.00")

NOTE_SALE = "Sales Collection"
NOTE_SALE_ADJUSTMENT = "Sales collection adjusted on sale update"


class SaleError(ConflictError):
    """Raised for sale operation errors."""
    pass


@dataclass
class SaleInput:
    memo_no: str | None = None
    sale_date: date | None = None
    customer_id: int | None = None
    salesperson_id: int | None = None
    payment_account_id: int | None = None
    total_payable_amount: Decimal | None = None
    paid_amount: Decimal | None = None
    notes: str | None = None
    items: list[LineItem] | None = None
    fields: frozenset = frozenset()


SALE_FIELDS = {
    "memo_no", "sale_date", "customer_id", "salesperson_id", "payment_account_id",
    "total_payable_amount", "paid_amount", "notes", "items",
}


def parse_sale_payload(payload: Any, *, partial: bool = False) -> SaleInput:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - SALE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    data = SaleInput(fields=frozenset(payload))
    if not partial:
        for required in ("customer_id", "salesperson_id", "items"):
            if required not in payload:
                raise ValidationError(f"{required} is required")

    if payload.get("memo_no") is not None:
        memo_no = str(payload["memo_no"]).strip()
        if not memo_no or len(memo_no) > 64:
            raise ValidationError("memo_no must be 1-64 characters")
        data.memo_no = memo_no
    if "sale_date" in payload:
        data.sale_date = parse_date(payload.get("sale_date"), "sale_date", required=False)
    if "customer_id" in payload:
        data.customer_id = parse_id(payload.get("customer_id"), "customer_id")
    if "salesperson_id" in payload:
        data.salesperson_id = parse_id(payload.get("salesperson_id"), "salesperson_id")
    if "payment_account_id" in payload:
        data.payment_account_id = parse_id(payload.get("payment_account_id"), "payment_account_id", required=False)
    if "items" in payload:
        data.items = parse_line_items(payload.get("items"), amount_field="total_price")
    if payload.get("total_payable_amount") is not None:
        data.total_payable_amount = parse_amount(payload["total_payable_amount"], "total_payable_amount")
    elif data.items is not None:
        data.total_payable_amount = sum((i.amount for i in data.items), ZERO)
    if "paid_amount" in payload:
        data.paid_amount = parse_amount(payload.get("paid_amount"), "paid_amount", default=ZERO)
    if "notes" in payload:
        notes = payload.get("notes")
        data.notes = str(notes).strip() if notes is not None else None

    if not partial:
        if data.paid_amount is None:
            data.paid_amount = ZERO
        if data.paid_amount > 0 and not data.payment_account_id:
            raise ValidationError("payment_account_id is required when a payment is taken")
    return data


# =============================================================================
# EFFECTS
# =============================================================================

def _post_sale_effects(sale: Sale, sign: int) -> None:
    payable = Decimal(sale.total_payable_amount)
    paid = Decimal(sale.paid_amount)
    items = sum(item.quantity for item in sale.items)

    for item in sale.items:
        adjust_stock(item.product_id, -sign * item.quantity)

    account_type = None
    if paid > 0:
        account_type = get_account_type(sale.payment_account_id)
        apply_account_delta(sale.payment_account_id, sign * paid)

    shortfall = payable - paid
    if shortfall > 0:
        adjust_customer_due(sale.customer_id, sign * shortfall)

    upsert_top_sheet(
        sale.branch_id,
        sale.sale_date,
        ready_made=sign * items,
        **cash_bank_deltas(account_type, sign * paid),
    )
    upsert_progress(
        sale.sale_date,
        sale.salesperson_id,
        sale.branch_id,
        sale_amount=sign * payable,
        item_count=sign * items,
    )


def _check_stock(sale: Sale) -> None:
    product_ids = [item.product_id for item in sale.items]
    short = (
        db.session.query(Product.id, Product.quantity)
        .filter(Product.id.in_(product_ids), Product.quantity < 0)
        .all()
    )
    if short:
        raise SaleError(
            "Insufficient stock to record sale",
            details={"items": [{"product_id": pid, "shortfall": -qty} for pid, qty in short]},
        )


def apply_sale_effects(sale: Sale) -> None:
    """Post a sale: stock out, payment in, due for any shortfall, rollups."""
    _post_sale_effects(sale, 1)
    _check_stock(sale)


def reverse_sale_effects(sale: Sale) -> None:
    """Exact negation of apply_sale_effects for the sale as currently stored."""
    _post_sale_effects(sale, -1)


# =============================================================================
# OPERATIONS
# =============================================================================

def _check_memo_available(branch_id: int, memo_no: str) -> None:
    exists = db.session.query(Sale.id).filter_by(branch_id=branch_id, memo_no=memo_no).first()
    if exists:
        raise ConflictError("Memo number already exists", details={"memo_no": memo_no})


def _sold_items(memo_no: str, lines: list[LineItem]) -> list[SoldItem]:
    return [
        SoldItem(memo_no=memo_no, product_id=line.product_id, quantity=line.quantity, total_price=line.amount)
        for line in lines
    ]


def create_sale(branch_id: int, payload: Any) -> Sale:
    data = parse_sale_payload(payload)

    def _op() -> Sale:
        require_branch(branch_id)
        require_customer(branch_id, data.customer_id)
        require_employee(branch_id, data.salesperson_id)
        require_products(branch_id, [i.product_id for i in data.items])
        if data.payment_account_id:
            get_account_type(data.payment_account_id, branch_id=branch_id)

        if data.memo_no:
            _check_memo_available(branch_id, data.memo_no)
            memo_no = data.memo_no
        else:
            memo_no = next_memo_number(branch_id=branch_id, document_type="SALE")

        sale = Sale(
            branch_id=branch_id,
            memo_no=memo_no,
            sale_date=data.sale_date or today(),
            customer_id=data.customer_id,
            salesperson_id=data.salesperson_id,
            payment_account_id=data.payment_account_id,
            total_payable_amount=data.total_payable_amount,
            paid_amount=data.paid_amount,
            total_items=sum(i.quantity for i in data.items),
            notes=data.notes,
        )
        sale.items.extend(_sold_items(memo_no, data.items))
        db.session.add(sale)
        flush_document(memo_no)

        apply_sale_effects(sale)

        if sale.paid_amount > 0:
            record_transaction(
                branch_id=branch_id,
                memo_no=memo_no,
                from_entity_type="customers",
                from_entity_id=sale.customer_id,
                to_entity_type="accounts",
                to_entity_id=sale.payment_account_id,
                amount=sale.paid_amount,
                transaction_type="payment",
                notes=NOTE_SALE,
            )
        return sale

    return run_atomic(_op)


def update_sale(branch_id: int, memo_no: str, payload: Any) -> Sale:
    """
    Replace a sale: reverse every effect of the stored version, rewrite the
    header and sold items, then apply the new version. A changed collection
    appends adjustment entries to the ledger.
    """
    data = parse_sale_payload(payload, partial=True)

    def _op() -> Sale:
        sale = lock_for_update(
            db.session.query(Sale).filter_by(branch_id=branch_id, memo_no=memo_no)
        ).first()
        if not sale:
            raise NotFoundError("Sale not found", details={"memo_no": memo_no})
        if data.memo_no is not None and data.memo_no != sale.memo_no:
            raise ValidationError("memo_no cannot be changed", details={"memo_no": sale.memo_no})

        old_account_id = sale.payment_account_id
        old_paid = Decimal(sale.paid_amount)

        # Phase 1: undo the stored sale
        reverse_sale_effects(sale)

        fields = data.fields
        if "sale_date" in fields and data.sale_date:
            sale.sale_date = data.sale_date
        if "customer_id" in fields and data.customer_id != sale.customer_id:
            require_customer(branch_id, data.customer_id)
            sale.customer_id = data.customer_id
        if "salesperson_id" in fields and data.salesperson_id != sale.salesperson_id:
            require_employee(branch_id, data.salesperson_id)
            sale.salesperson_id = data.salesperson_id
        if "payment_account_id" in fields:
            sale.payment_account_id = data.payment_account_id
        if "paid_amount" in fields:
            sale.paid_amount = data.paid_amount
        if "notes" in fields:
            sale.notes = data.notes
        if data.items is not None:
            require_products(branch_id, [i.product_id for i in data.items])
            sale.items.clear()
            db.session.flush()
            sale.items.extend(_sold_items(sale.memo_no, data.items))
            sale.total_items = sum(i.quantity for i in data.items)
        if data.total_payable_amount is not None:
            sale.total_payable_amount = data.total_payable_amount

        new_paid = Decimal(sale.paid_amount)
        if new_paid > 0 and not sale.payment_account_id:
            raise ValidationError("payment_account_id is required when a payment is taken")
        if sale.payment_account_id:
            get_account_type(sale.payment_account_id, branch_id=branch_id)
        db.session.flush()

        # Phase 2: apply the new version
        apply_sale_effects(sale)

        ledger_deltas: dict[int, Decimal] = {}
        if old_account_id and old_paid:
            ledger_deltas[old_account_id] = ledger_deltas.get(old_account_id, ZERO) - old_paid
        if sale.payment_account_id and new_paid:
            ledger_deltas[sale.payment_account_id] = ledger_deltas.get(sale.payment_account_id, ZERO) + new_paid
        for account_id, delta in ledger_deltas.items():
            if not delta:
                continue
            record_transaction(
                branch_id=branch_id,
                memo_no=sale.memo_no,
                from_entity_type="customers",
                from_entity_id=sale.customer_id,
                to_entity_type="accounts",
                to_entity_id=account_id,
                amount=delta,
                transaction_type="adjustment",
                notes=NOTE_SALE_ADJUSTMENT,
            )
        return sale

    return run_atomic(_op)


def get_sale(branch_id: int, memo_no: str) -> Sale:
    sale = db.session.query(Sale).filter_by(branch_id=branch_id, memo_no=memo_no).first()
    if not sale:
        raise NotFoundError("Sale not found", details={"memo_no": memo_no})
    return sale


def list_sales(
    branch_id: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    customer_id: int | None = None,
    limit: int = 200,
) -> list[Sale]:
    query = db.session.query(Sale).filter(Sale.branch_id == branch_id)
    if start_date:
        query = query.filter(Sale.sale_date >= start_date)
    if end_date:
        query = query.filter(Sale.sale_date <= end_date)
    if customer_id:
        query = query.filter(Sale.customer_id == customer_id)
    return query.order_by(Sale.id.desc()).limit(max(1, limit)).all()
