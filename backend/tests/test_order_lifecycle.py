# Overview: Pytest coverage for the order lifecycle engine.

"""
Order Lifecycle Tests

Every lifecycle call moves several denormalized aggregates at once. These
tests check the aggregates after each call:
1. Account balance and the transaction ledger
2. Customer due
3. Branch top sheet (item buckets, cash/bank)
4. Salesperson progress
5. State machine legality and the delivery clamp
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from erpmini.extensions import db
from erpmini.models import Account, Customer, Order, TopSheet, Transaction
from erpmini.services import ledger_service, order_service, reporting_service
from erpmini.services.lifecycle_service import OrderStateError, can_transition, OrderStatus
from erpmini.validation import ConflictError, NotFoundError, ValidationError


DAY = date(2026, 10, 17)


def _top(branch, day=DAY):
    return reporting_service.get_top_sheet(branch.id, day)


def _progress(employee, day=DAY):
    return reporting_service.get_progress(employee.id, day)


def _balance(account):
    return db.session.get(Account, account.id).current_balance


def _due(customer):
    return db.session.get(Customer, customer.id).due_amount


def _entries(branch, memo_no):
    return list(reversed(ledger_service.list_transactions(branch_id=branch.id, memo_no=memo_no)))


class TestCreateOrder:

    def test_create_posts_every_aggregate(self, db_session, branch, order_payload, cash_account, customer, salesperson):
        """total 1000, advance 200 into cash: balance +200, due +800, pending +5, cash +200."""
        order = order_service.create_order(branch.id, order_payload())

        assert order.status == "pending"
        assert order.total_items == 5
        assert order.items_delivered == 0
        assert len(order.items) == 2
        assert order.due_amount == Decimal("800")

        assert _balance(cash_account) == Decimal("200")
        assert _due(customer) == Decimal("800")

        sheet = _top(branch)
        assert sheet.pending == 5
        assert sheet.order_count == 5
        assert sheet.cash == Decimal("200")
        assert sheet.bank == Decimal("0")

        assert _progress(salesperson).order_count == 5

        entries = _entries(branch, order.memo_no)
        assert len(entries) == 1
        assert entries[0].transaction_type == "payment"
        assert entries[0].from_entity_type == "customers"
        assert entries[0].to_entity_type == "accounts"
        assert entries[0].to_entity_id == cash_account.id
        assert entries[0].amount == Decimal("200")
        assert entries[0].notes == "Advance payment for order"

    def test_bank_advance_goes_to_bank_column(self, db_session, branch, order_payload, bank_account):
        order_service.create_order(branch.id, order_payload(payment_account_id=bank_account.id))

        sheet = _top(branch)
        assert sheet.bank == Decimal("200")
        assert sheet.cash == Decimal("0")
        assert _balance(bank_account) == Decimal("200")

    def test_no_advance_no_ledger_entry(self, db_session, branch, order_payload, cash_account, customer):
        order = order_service.create_order(
            branch.id,
            order_payload(advance_payment_amount="0", payment_account_id=None),
        )
        assert _entries(branch, order.memo_no) == []
        assert _balance(cash_account) == Decimal("0")
        assert _due(customer) == Decimal("1000")
        assert _top(branch).cash == Decimal("0")

    def test_overpaid_advance_adds_no_due(self, db_session, branch, order_payload, customer):
        order_service.create_order(branch.id, order_payload(advance_payment_amount="1200.00"))
        assert _due(customer) == Decimal("0")

    def test_total_defaults_to_item_subtotals(self, db_session, branch, order_payload):
        payload = order_payload()
        del payload["total_payable_amount"]
        order = order_service.create_order(branch.id, payload)
        assert order.total_payable_amount == Decimal("1000")

    def test_memo_numbers_are_sequential(self, db_session, branch, order_payload):
        first = order_service.create_order(branch.id, order_payload())
        second = order_service.create_order(branch.id, order_payload())
        assert first.memo_no == f"ORD-{branch.id:03d}-0001"
        assert second.memo_no == f"ORD-{branch.id:03d}-0002"

    def test_duplicate_memo_rejected(self, db_session, branch, order_payload):
        order_service.create_order(branch.id, order_payload(memo_no="M-100"))
        with pytest.raises(ConflictError):
            order_service.create_order(branch.id, order_payload(memo_no="M-100"))

    def test_auto_memo_skips_manually_entered_numbers(self, db_session, branch, order_payload):
        manual = order_service.create_order(branch.id, order_payload(memo_no=f"ORD-{branch.id:03d}-0001"))
        order_service.create_order(branch.id, order_payload(memo_no=f"ORD-{branch.id:03d}-0003"))

        first = order_service.create_order(branch.id, order_payload())
        second = order_service.create_order(branch.id, order_payload())
        third = order_service.create_order(branch.id, order_payload())

        assert manual.memo_no == f"ORD-{branch.id:03d}-0001"
        assert first.memo_no == f"ORD-{branch.id:03d}-0002"
        assert second.memo_no == f"ORD-{branch.id:03d}-0004"
        assert third.memo_no == f"ORD-{branch.id:03d}-0005"
        assert db_session.query(Order).count() == 5

    def test_memo_clash_on_flush_is_a_conflict(self, db_session, branch, order_payload, cash_account, monkeypatch):
        order_service.create_order(branch.id, order_payload(memo_no="M-200"))
        monkeypatch.setattr(order_service, "_check_memo_available", lambda branch_id, memo_no: None)

        with pytest.raises(ConflictError) as exc:
            order_service.create_order(branch.id, order_payload(memo_no="M-200"))

        assert exc.value.details["memo_no"] == "M-200"
        assert db_session.query(Order).count() == 1
        assert _balance(cash_account) == Decimal("200")

    def test_item_subtotal_required(self, db_session, branch, order_payload, products):
        shirt, _ = products
        with pytest.raises(ValidationError):
            order_service.create_order(branch.id, order_payload(items=[{"product_id": shirt.id, "quantity": 2}]))
        assert db_session.query(Order).count() == 0

    def test_advance_requires_payment_account(self, db_session, branch, order_payload):
        with pytest.raises(ValidationError):
            order_service.create_order(branch.id, order_payload(payment_account_id=None))

    def test_duplicate_product_lines_rejected(self, db_session, branch, order_payload, products):
        shirt, _ = products
        items = [
            {"product_id": shirt.id, "quantity": 1, "subtotal": "100"},
            {"product_id": shirt.id, "quantity": 2, "subtotal": "200"},
        ]
        with pytest.raises(ValidationError):
            order_service.create_order(branch.id, order_payload(items=items))

    def test_unknown_product_leaves_nothing_behind(self, db_session, branch, order_payload, cash_account):
        items = [{"product_id": 999999, "quantity": 1, "subtotal": "100"}]
        with pytest.raises(NotFoundError):
            order_service.create_order(branch.id, order_payload(items=items))

        assert db_session.query(Order).count() == 0
        assert db_session.query(Transaction).count() == 0
        assert _balance(cash_account) == Decimal("0")

    def test_account_from_other_branch_rejected(self, db_session, branch, other_branch, order_payload):
        foreign = Account(branch_id=other_branch.id, name="Cash", type="cash")
        db_session.add(foreign)
        db_session.commit()
        with pytest.raises(NotFoundError):
            order_service.create_order(branch.id, order_payload(payment_account_id=foreign.id))

    def test_failure_midway_rolls_back_everything(self, db_session, branch, order_payload, cash_account, customer, monkeypatch):
        """A crash after the account was credited must leave no trace."""
        def boom(*args, **kwargs):
            raise RuntimeError("progress store unavailable")

        monkeypatch.setattr(order_service, "upsert_progress", boom)
        with pytest.raises(RuntimeError):
            order_service.create_order(branch.id, order_payload())

        assert db_session.query(Order).count() == 0
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TopSheet).count() == 0
        assert _balance(cash_account) == Decimal("0")
        assert _due(customer) == Decimal("0")


class TestCancelOrder:

    def test_cancel_pending_reverses_everything(self, db_session, branch, order_payload, cash_account, customer, salesperson):
        """Create (1000/200) then cancel the same day: every aggregate nets to zero."""
        order = order_service.create_order(branch.id, order_payload())
        order = order_service.cancel_order(branch.id, order.id, on_date=DAY)

        assert order.status == "cancelled"
        assert _balance(cash_account) == Decimal("0")
        assert _due(customer) == Decimal("0")

        sheet = _top(branch)
        assert sheet.pending == 0
        assert sheet.cancelled == 5
        assert sheet.cash == Decimal("0")
        assert _progress(salesperson).order_count == 0

        entries = _entries(branch, order.memo_no)
        assert [e.transaction_type for e in entries] == ["payment", "refund"]
        refund = entries[1]
        assert refund.from_entity_type == "accounts"
        assert refund.to_entity_type == "customers"
        assert refund.amount == Decimal("200")

    def test_cancel_checkout_moves_checkout_bucket(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        order_service.cancel_order(branch.id, order.id, on_date=DAY)

        sheet = _top(branch)
        assert sheet.pending == 0
        assert sheet.checkout == 0
        assert sheet.cancelled == 5

    def test_cancel_partially_delivered_keeps_cash(self, db_session, branch, order_payload, cash_account, customer, salesperson):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        order_service.confirm_delivery(
            branch.id, order.id,
            {"items_to_deliver": 3, "paid_amount": "300.00", "exit_date": DAY.isoformat()},
        )

        order = order_service.cancel_order(branch.id, order.id, on_date=DAY)

        assert order.status == "cancelled"
        assert _balance(cash_account) == Decimal("500")
        sheet = _top(branch)
        assert sheet.checkout == 0
        assert sheet.delivery == 3
        assert sheet.cancelled == 2
        assert sheet.cash == Decimal("500")
        assert _progress(salesperson).order_count == 3
        assert _due(customer) == Decimal("0")
        assert "refund" not in [e.transaction_type for e in _entries(branch, order.memo_no)]

    def test_cancel_twice_rejected(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order_service.cancel_order(branch.id, order.id, on_date=DAY)
        with pytest.raises(OrderStateError):
            order_service.cancel_order(branch.id, order.id, on_date=DAY)

    def test_cancel_fully_delivered_rejected_without_changes(self, db_session, branch, order_payload, cash_account, customer):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        order_service.confirm_delivery(
            branch.id, order.id,
            {"items_to_deliver": 5, "paid_amount": "800.00", "exit_date": DAY.isoformat()},
        )
        tx_count = db_session.query(Transaction).count()

        with pytest.raises(OrderStateError):
            order_service.cancel_order(branch.id, order.id, on_date=DAY)

        order = order_service.get_order(branch.id, order.id)
        assert order.status == "delivery"
        assert _balance(cash_account) == Decimal("1000")
        assert _due(customer) == Decimal("0")
        assert _top(branch).cancelled == 0
        assert db_session.query(Transaction).count() == tx_count

    def test_unknown_order(self, db_session, branch):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(branch.id, 424242)


class TestCheckoutAndDelivery:

    def test_checkout_moves_pending_to_checkout(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order = order_service.checkout_order(branch.id, order.id, on_date=DAY)

        assert order.status == "checkout"
        sheet = _top(branch)
        assert sheet.pending == 0
        assert sheet.checkout == 5

    def test_checkout_twice_rejected(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        with pytest.raises(OrderStateError):
            order_service.checkout_order(branch.id, order.id, on_date=DAY)
        assert _top(branch).checkout == 5

    def test_checkout_cancelled_rejected(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order_service.cancel_order(branch.id, order.id, on_date=DAY)
        with pytest.raises(OrderStateError):
            order_service.checkout_order(branch.id, order.id, on_date=DAY)

    def test_delivery_requires_checkout(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        with pytest.raises(OrderStateError):
            order_service.confirm_delivery(branch.id, order.id, {"items_to_deliver": 1})

    def test_partial_delivery_then_clamp(self, db_session, branch, order_payload, cash_account, customer):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)

        order = order_service.confirm_delivery(
            branch.id, order.id,
            {"items_to_deliver": 3, "paid_amount": "300.00", "exit_date": DAY.isoformat()},
        )
        assert order.status == "delivery"
        assert order.items_delivered == 3
        assert order.is_partially_delivered
        assert order.advance_payment_amount == Decimal("500")
        assert order.exit_date == DAY
        assert _balance(cash_account) == Decimal("500")
        assert _due(customer) == Decimal("500")

        sheet = _top(branch)
        assert sheet.checkout == 2
        assert sheet.delivery == 3
        assert sheet.cash == Decimal("500")

        # Asks for 10, only 2 remain
        order = order_service.confirm_delivery(
            branch.id, order.id,
            {"items_to_deliver": 10, "exit_date": DAY.isoformat()},
        )
        assert order.items_delivered == order.total_items == 5
        assert not order.is_partially_delivered
        sheet = _top(branch)
        assert sheet.checkout == 0
        assert sheet.delivery == 5

        with pytest.raises(OrderStateError):
            order_service.confirm_delivery(branch.id, order.id, {"items_to_deliver": 1})

    def test_delivery_payment_entry(self, db_session, branch, order_payload, bank_account):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        order_service.confirm_delivery(
            branch.id, order.id,
            {
                "items_to_deliver": 5,
                "paid_amount": "800.00",
                "payment_account_id": bank_account.id,
                "exit_date": DAY.isoformat(),
            },
        )

        entries = _entries(branch, order.memo_no)
        assert entries[-1].notes == "Payment during product delivery"
        assert entries[-1].to_entity_id == bank_account.id
        assert _top(branch).bank == Decimal("800")

    def test_delivery_posts_on_exit_date(self, db_session, branch, order_payload):
        later = DAY + timedelta(days=3)
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)
        order_service.confirm_delivery(
            branch.id, order.id,
            {"items_to_deliver": 2, "exit_date": later.isoformat()},
        )
        assert _top(branch, later).delivery == 2
        assert _top(branch, later).checkout == -2
        assert _top(branch).checkout == 5

    def test_total_items_alias_and_validation(self, db_session, branch, order_payload):
        order = order_service.create_order(branch.id, order_payload())
        order_service.checkout_order(branch.id, order.id, on_date=DAY)

        with pytest.raises(ValidationError):
            order_service.confirm_delivery(branch.id, order.id, {"items_to_deliver": 0})

        order = order_service.confirm_delivery(branch.id, order.id, {"total_items": 1})
        assert order.items_delivered == 1


class TestStateMachine:

    def test_transition_table(self):
        order = Order(status="pending", total_items=5, items_delivered=0)
        assert can_transition(order, OrderStatus.CHECKOUT)
        assert can_transition(order, OrderStatus.CANCELLED)
        assert not can_transition(order, OrderStatus.DELIVERY)

        order.status = "checkout"
        assert not can_transition(order, OrderStatus.PENDING)
        assert can_transition(order, OrderStatus.DELIVERY)

        order.status = "delivery"
        order.items_delivered = 2
        assert can_transition(order, OrderStatus.DELIVERY)
        assert can_transition(order, OrderStatus.CANCELLED)

        order.items_delivered = 5
        assert not can_transition(order, OrderStatus.DELIVERY)
        assert not can_transition(order, OrderStatus.CANCELLED)

        order.status = "cancelled"
        for target in OrderStatus:
            assert not can_transition(order, target)

    def test_state_errors_are_conflicts(self):
        assert issubclass(OrderStateError, ConflictError)
