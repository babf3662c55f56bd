# Overview: Order lifecycle engine; every transition posts its deltas in one unit of work.

"""
Order Service

Each public operation loads the order header under lock, checks the
transition against services/lifecycle_service.py, writes the header by value
and then posts SIGNED DELTAS to every aggregate the order feeds:

    account balance        balance_service.apply_account_delta
    customer due           balance_service.adjust_customer_due
    branch top sheet       rollup_service.upsert_top_sheet
    salesperson progress   rollup_service.upsert_progress
    transaction ledger     ledger_service.record_transaction (append-only)

Everything runs inside concurrency.run_atomic: a failure at any step rolls
back the whole operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderItem
from erpmini.time_utils import today
from erpmini.validation import (
    LineItem,
    NotFoundError,
    ConflictError,
    ValidationError,
    parse_amount,
    parse_date,
    parse_id,
    parse_line_items,
    parse_quantity,
)
from .balance_service import (
    adjust_customer_due,
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
from .lifecycle_service import (
    OrderStatus,
    require_editable,
    require_transition,
    VALID_STATUSES,
)
from .rollup_service import cash_bank_deltas, upsert_progress, upsert_top_sheet


ZERO = Decimal("0.00")

NOTE_ADVANCE = "Advance payment for order"
NOTE_ADVANCE_ADJUSTMENT = "Advance payment adjusted on order update"
NOTE_DELIVERY_PAYMENT = "Payment during product delivery"
NOTE_REFUND = "Refund for cancelled order"


# =============================================================================
# PAYLOAD PARSING (runs before any unit of work opens)
# =============================================================================

@dataclass
class OrderInput:
    memo_no: str | None = None
    order_date: date | None = None
    customer_id: int | None = None
    salesperson_id: int | None = None
    payment_account_id: int | None = None
    total_payable_amount: Decimal | None = None
    advance_payment_amount: Decimal | None = None
    delivery_date: date | None = None
    notes: str | None = None
    items: list[LineItem] | None = None
    fields: frozenset = frozenset()


ORDER_FIELDS = {
    "memo_no", "order_date", "customer_id", "salesperson_id", "payment_account_id",
    "total_payable_amount", "advance_payment_amount", "delivery_date", "notes", "items",
}


def parse_order_payload(payload: Any, *, partial: bool = False) -> OrderInput:
    """
    Validate an order payload.

    partial=True (update): only keys present in the payload are applied.
    total_payable_amount defaults to the sum of item subtotals.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - ORDER_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    data = OrderInput(fields=frozenset(payload))

    if not partial:
        for required in ("customer_id", "salesperson_id", "items"):
            if required not in payload:
                raise ValidationError(f"{required} is required")

    if payload.get("memo_no") is not None:
        memo_no = str(payload["memo_no"]).strip()
        if not memo_no or len(memo_no) > 64:
            raise ValidationError("memo_no must be 1-64 characters")
        data.memo_no = memo_no

    if "order_date" in payload:
        data.order_date = parse_date(payload.get("order_date"), "order_date", required=False)
    if "customer_id" in payload:
        data.customer_id = parse_id(payload.get("customer_id"), "customer_id")
    if "salesperson_id" in payload:
        data.salesperson_id = parse_id(payload.get("salesperson_id"), "salesperson_id")
    if "payment_account_id" in payload:
        data.payment_account_id = parse_id(payload.get("payment_account_id"), "payment_account_id", required=False)
    if "items" in payload:
        data.items = parse_line_items(payload.get("items"), amount_field="subtotal")
    if payload.get("total_payable_amount") is not None:
        data.total_payable_amount = parse_amount(payload["total_payable_amount"], "total_payable_amount")
    elif data.items is not None:
        data.total_payable_amount = sum((i.amount for i in data.items), ZERO)
    if "advance_payment_amount" in payload:
        data.advance_payment_amount = parse_amount(
            payload.get("advance_payment_amount"), "advance_payment_amount", default=ZERO
        )
    if "delivery_date" in payload:
        data.delivery_date = parse_date(payload.get("delivery_date"), "delivery_date", required=False)
    if "notes" in payload:
        notes = payload.get("notes")
        data.notes = str(notes).strip() if notes is not None else None

    if not partial:
        if data.advance_payment_amount is None:
            data.advance_payment_amount = ZERO
        if data.advance_payment_amount > 0 and not data.payment_account_id:
            raise ValidationError("payment_account_id is required when an advance payment is taken")

    return data


@dataclass(frozen=True)
class DeliveryInput:
    items_to_deliver: int
    paid_amount: Decimal
    payment_account_id: int | None
    exit_date: date | None


def parse_delivery_payload(payload: Any) -> DeliveryInput:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    items = payload.get("items_to_deliver", payload.get("total_items"))
    return DeliveryInput(
        items_to_deliver=parse_quantity(items, "items_to_deliver"),
        paid_amount=parse_amount(payload.get("paid_amount"), "paid_amount", default=ZERO),
        payment_account_id=parse_id(payload.get("payment_account_id"), "payment_account_id", required=False),
        exit_date=parse_date(payload.get("exit_date"), "exit_date", required=False),
    )


# =============================================================================
# HELPERS
# =============================================================================

def _load_order_locked(branch_id: int, order_id: int) -> Order:
    order = lock_for_update(
        db.session.query(Order).filter_by(id=order_id, branch_id=branch_id)
    ).first()
    if not order:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def _negate(fields: dict) -> dict:
    return {k: -v for k, v in fields.items()}


def _diff(new: dict, old: dict) -> dict:
    out = {}
    for key in set(new) | set(old):
        out[key] = new.get(key, 0) - old.get(key, 0)
    return out


def _repost(poster, old_key: tuple, old_fields: dict, new_key: tuple, new_fields: dict) -> None:
    """
    Move an order's contribution from (old_key, old_fields) to (new_key, new_fields).

    Same key: one call with the signed difference. Different key: the old
    contribution is reversed on the old row and the new one added to the new row.
    """
    if old_key == new_key:
        poster(*new_key, **_diff(new_fields, old_fields))
        return
    poster(*old_key, **_negate(old_fields))
    poster(*new_key, **new_fields)


def _top_sheet_contribution(bucket: str, total_items: int, account_type: str | None, advance: Decimal) -> dict:
    fields = {bucket: total_items, "order_count": total_items}
    fields.update(cash_bank_deltas(account_type, advance))
    return fields


def _check_memo_available(branch_id: int, memo_no: str) -> None:
    exists = db.session.query(Order.id).filter_by(branch_id=branch_id, memo_no=memo_no).first()
    if exists:
        raise ConflictError("Memo number already exists", details={"memo_no": memo_no})


# =============================================================================
# LIFECYCLE OPERATIONS
# =============================================================================

def create_order(branch_id: int, payload: Any) -> Order:
    """
    Create a pending order and post its opening effects:
    advance credited and recorded, top sheet pending/order_count (+cash/bank),
    customer due, salesperson order_count.
    """
    data = parse_order_payload(payload)

    def _op() -> Order:
        require_branch(branch_id)
        require_customer(branch_id, data.customer_id)
        require_employee(branch_id, data.salesperson_id)
        require_products(branch_id, [i.product_id for i in data.items])

        account_type = None
        if data.payment_account_id:
            account_type = get_account_type(data.payment_account_id, branch_id=branch_id)

        if data.memo_no:
            _check_memo_available(branch_id, data.memo_no)
            memo_no = data.memo_no
        else:
            memo_no = next_memo_number(branch_id=branch_id, document_type="ORDER")

        order_date = data.order_date or today()
        total_items = sum(i.quantity for i in data.items)
        advance = data.advance_payment_amount

        order = Order(
            branch_id=branch_id,
            memo_no=memo_no,
            order_date=order_date,
            customer_id=data.customer_id,
            salesperson_id=data.salesperson_id,
            payment_account_id=data.payment_account_id,
            total_payable_amount=data.total_payable_amount,
            advance_payment_amount=advance,
            status=OrderStatus.PENDING.value,
            total_items=total_items,
            items_delivered=0,
            delivery_date=data.delivery_date,
            notes=data.notes,
        )
        for line in data.items:
            order.items.append(OrderItem(
                memo_no=memo_no,
                product_id=line.product_id,
                quantity=line.quantity,
                subtotal=line.amount,
            ))
        db.session.add(order)
        flush_document(memo_no)

        if advance > 0:
            apply_account_delta(data.payment_account_id, advance)
            record_transaction(
                branch_id=branch_id,
                memo_no=memo_no,
                from_entity_type="customers",
                from_entity_id=data.customer_id,
                to_entity_type="accounts",
                to_entity_id=data.payment_account_id,
                amount=advance,
                transaction_type="payment",
                notes=NOTE_ADVANCE,
            )

        upsert_top_sheet(
            branch_id,
            order_date,
            **_top_sheet_contribution(OrderStatus.PENDING.value, total_items, account_type, advance),
        )

        due = order.due_amount
        if due > 0:
            adjust_customer_due(data.customer_id, due)

        upsert_progress(order_date, data.salesperson_id, branch_id, order_count=total_items)
        return order

    return run_atomic(_op)


def update_order(branch_id: int, order_id: int, payload: Any) -> Order:
    """
    Edit a pending or checkout order.

    Header fields are written by value; every aggregate receives the signed
    difference between the order's old and new contribution. A changed
    advance (or payment account) APPENDS adjustment entries to the ledger.
    """
    data = parse_order_payload(payload, partial=True)

    def _op() -> Order:
        order = _load_order_locked(branch_id, order_id)
        current = require_editable(order)

        if data.memo_no is not None and data.memo_no != order.memo_no:
            raise ValidationError("memo_no cannot be changed", details={"memo_no": order.memo_no})

        # --- snapshot of the old contribution ---
        old_date = order.order_date
        old_customer_id = order.customer_id
        old_salesperson_id = order.salesperson_id
        old_account_id = order.payment_account_id
        old_total = order.total_items
        old_advance = Decimal(order.advance_payment_amount)
        old_due = order.due_amount
        old_account_type = get_account_type(old_account_id) if old_account_id else None

        # --- new header values ---
        fields = data.fields
        new_date = (data.order_date or old_date) if "order_date" in fields else old_date
        new_customer_id = data.customer_id if "customer_id" in fields else old_customer_id
        new_salesperson_id = data.salesperson_id if "salesperson_id" in fields else old_salesperson_id
        new_account_id = data.payment_account_id if "payment_account_id" in fields else old_account_id
        new_advance = data.advance_payment_amount if "advance_payment_amount" in fields else old_advance

        if new_customer_id != old_customer_id:
            require_customer(branch_id, new_customer_id)
        if new_salesperson_id != old_salesperson_id:
            require_employee(branch_id, new_salesperson_id)
        if new_advance > 0 and not new_account_id:
            raise ValidationError("payment_account_id is required when an advance payment is taken")
        new_account_type = None
        if new_account_id:
            new_account_type = get_account_type(new_account_id, branch_id=branch_id)

        # --- item diff by product id ---
        if data.items is not None:
            require_products(branch_id, [i.product_id for i in data.items])
            existing = {item.product_id: item for item in order.items}
            incoming = {line.product_id: line for line in data.items}
            for product_id, item in existing.items():
                if product_id not in incoming:
                    order.items.remove(item)
            for product_id, line in incoming.items():
                item = existing.get(product_id)
                if item is None:
                    order.items.append(OrderItem(
                        memo_no=order.memo_no,
                        product_id=product_id,
                        quantity=line.quantity,
                        subtotal=line.amount,
                    ))
                    continue
                if item.quantity != line.quantity:
                    item.quantity = line.quantity
                if Decimal(item.subtotal) != line.amount:
                    item.subtotal = line.amount
            new_total = sum(line.quantity for line in data.items)
        else:
            new_total = old_total

        # --- header ---
        order.order_date = new_date
        order.customer_id = new_customer_id
        order.salesperson_id = new_salesperson_id
        order.payment_account_id = new_account_id
        order.advance_payment_amount = new_advance
        order.total_items = new_total
        if data.total_payable_amount is not None:
            order.total_payable_amount = data.total_payable_amount
        if "delivery_date" in fields:
            order.delivery_date = data.delivery_date
        if "notes" in fields:
            order.notes = data.notes
        db.session.flush()

        # --- accounts + ledger (append-only adjustments) ---
        account_deltas: dict[int, Decimal] = {}
        if old_account_id and old_advance:
            account_deltas[old_account_id] = account_deltas.get(old_account_id, ZERO) - old_advance
        if new_account_id and new_advance:
            account_deltas[new_account_id] = account_deltas.get(new_account_id, ZERO) + new_advance
        for account_id, delta in account_deltas.items():
            if not delta:
                continue
            apply_account_delta(account_id, delta)
            record_transaction(
                branch_id=branch_id,
                memo_no=order.memo_no,
                from_entity_type="customers",
                from_entity_id=new_customer_id,
                to_entity_type="accounts",
                to_entity_id=account_id,
                amount=delta,
                transaction_type="adjustment",
                notes=NOTE_ADVANCE_ADJUSTMENT,
            )

        # --- top sheet ---
        bucket = current.value
        _repost(
            upsert_top_sheet,
            (branch_id, old_date),
            _top_sheet_contribution(bucket, old_total, old_account_type, old_advance),
            (branch_id, new_date),
            _top_sheet_contribution(bucket, new_total, new_account_type, new_advance),
        )

        # --- customer due ---
        new_due = order.due_amount
        if new_customer_id == old_customer_id:
            adjust_customer_due(new_customer_id, new_due - old_due)
        else:
            adjust_customer_due(old_customer_id, -old_due)
            adjust_customer_due(new_customer_id, new_due)

        # --- salesperson progress ---
        _repost(
            lambda d, e, **kw: upsert_progress(d, e, branch_id, **kw),
            (old_date, old_salesperson_id),
            {"order_count": old_total},
            (new_date, new_salesperson_id),
            {"order_count": new_total},
        )
        return order

    return run_atomic(_op)


def checkout_order(branch_id: int, order_id: int, *, on_date: date | None = None) -> Order:
    """pending -> checkout; moves total_items from top sheet pending to checkout."""
    def _op() -> Order:
        order = _load_order_locked(branch_id, order_id)
        require_transition(order, OrderStatus.CHECKOUT)

        order.status = OrderStatus.CHECKOUT.value
        db.session.flush()

        upsert_top_sheet(
            branch_id,
            on_date or today(),
            pending=-order.total_items,
            checkout=order.total_items,
        )
        return order

    return run_atomic(_op)


def confirm_delivery(branch_id: int, order_id: int, payload: Any) -> Order:
    """
    Deliver up to the remaining items of a checkout/delivery order.

    items_to_deliver is clamped to total_items - items_delivered, so repeated
    partial deliveries can never overshoot. A payment taken at delivery is
    credited, recorded and taken off the customer's due.
    """
    data = parse_delivery_payload(payload)

    def _op() -> Order:
        order = _load_order_locked(branch_id, order_id)
        require_transition(order, OrderStatus.DELIVERY)

        delivered = min(data.items_to_deliver, order.remaining_items)
        paid = data.paid_amount
        exit_date = data.exit_date or today()

        account_id = data.payment_account_id or order.payment_account_id
        account_type = None
        if paid > 0:
            if not account_id:
                raise ValidationError("payment_account_id is required when a payment is taken")
            account_type = get_account_type(account_id, branch_id=branch_id)

        order.status = OrderStatus.DELIVERY.value
        order.items_delivered = order.items_delivered + delivered
        order.advance_payment_amount = Decimal(order.advance_payment_amount) + paid
        order.exit_date = exit_date
        if order.payment_account_id is None and paid > 0:
            order.payment_account_id = account_id
        db.session.flush()

        if paid > 0:
            apply_account_delta(account_id, paid)
            record_transaction(
                branch_id=branch_id,
                memo_no=order.memo_no,
                from_entity_type="customers",
                from_entity_id=order.customer_id,
                to_entity_type="accounts",
                to_entity_id=account_id,
                amount=paid,
                transaction_type="payment",
                notes=NOTE_DELIVERY_PAYMENT,
            )
            adjust_customer_due(order.customer_id, -paid)

        upsert_top_sheet(
            branch_id,
            exit_date,
            checkout=-delivered,
            delivery=delivered,
            **cash_bank_deltas(account_type, paid),
        )
        return order

    return run_atomic(_op)


def cancel_order(branch_id: int, order_id: int, *, on_date: date | None = None) -> Order:
    """
    Cancel a pending, checkout or partially delivered order.

    Only the undelivered remainder moves to top sheet "cancelled". The advance
    is refunded only when nothing was delivered; for a partially delivered
    order the cash already taken stays where it is.
    """
    def _op() -> Order:
        order = _load_order_locked(branch_id, order_id)
        current = require_transition(order, OrderStatus.CANCELLED)

        day = on_date or today()
        remaining = order.remaining_items
        advance = Decimal(order.advance_payment_amount)
        outstanding = order.due_amount

        cash_fields: dict = {}
        if order.items_delivered == 0 and advance > 0 and order.payment_account_id:
            account_type = get_account_type(order.payment_account_id)
            apply_account_delta(order.payment_account_id, -advance)
            record_transaction(
                branch_id=branch_id,
                memo_no=order.memo_no,
                from_entity_type="accounts",
                from_entity_id=order.payment_account_id,
                to_entity_type="customers",
                to_entity_id=order.customer_id,
                amount=advance,
                transaction_type="refund",
                notes=NOTE_REFUND,
            )
            cash_fields = cash_bank_deltas(account_type, -advance)

        bucket = OrderStatus.PENDING.value if current is OrderStatus.PENDING else OrderStatus.CHECKOUT.value

        order.status = OrderStatus.CANCELLED.value
        db.session.flush()

        upsert_top_sheet(branch_id, day, **{bucket: -remaining}, cancelled=remaining, **cash_fields)
        upsert_progress(day, order.salesperson_id, branch_id, order_count=-remaining)
        if outstanding > 0:
            adjust_customer_due(order.customer_id, -outstanding)
        return order

    return run_atomic(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_order(branch_id: int, order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, branch_id=branch_id).first()
    if not order:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def list_orders(
    branch_id: int,
    *,
    status: str | None = None,
    customer_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 200,
) -> list[Order]:
    query = db.session.query(Order).filter(Order.branch_id == branch_id)
    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status '{status}'", details={"status": status})
        query = query.filter(Order.status == status)
    if customer_id:
        query = query.filter(Order.customer_id == customer_id)
    if start_date:
        query = query.filter(Order.order_date >= start_date)
    if end_date:
        query = query.filter(Order.order_date <= end_date)
    return query.order_by(Order.id.desc()).limit(max(1, limit)).all()


def get_order_items_by_memo(branch_id: int, memo_no: str) -> list[OrderItem]:
    order = db.session.query(Order).filter_by(branch_id=branch_id, memo_no=memo_no).first()
    if not order:
        raise NotFoundError("Order not found", details={"memo_no": memo_no})
    return list(order.items)


def order_summary(branch_id: int, *, start_date: date | None = None, end_date: date | None = None) -> dict:
    """Per-status counts and money totals for orders dated within the range."""
    query = db.session.query(
        Order.status,
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_items), 0),
        func.coalesce(func.sum(Order.total_payable_amount), 0),
        func.coalesce(func.sum(Order.advance_payment_amount), 0),
    ).filter(Order.branch_id == branch_id)
    if start_date:
        query = query.filter(Order.order_date >= start_date)
    if end_date:
        query = query.filter(Order.order_date <= end_date)

    by_status = {}
    total_payable = ZERO
    total_advance = ZERO
    for status, count, items, payable, advance in query.group_by(Order.status).all():
        payable = Decimal(str(payable)).quantize(Decimal("0.01"))
        advance = Decimal(str(advance)).quantize(Decimal("0.01"))
        by_status[status] = {"orders": count, "items": int(items)}
        if status != OrderStatus.CANCELLED.value:
            total_payable += payable
            total_advance += advance

    return {
        "by_status": by_status,
        "total_payable_amount": total_payable,
        "total_advance_amount": total_advance,
        "total_due_amount": max(total_payable - total_advance, ZERO),
    }
