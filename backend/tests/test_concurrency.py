# Overview: Threaded tests against a file-backed SQLite database.

"""
Concurrency Tests

Several threads hit the same aggregates at once (one account, one customer,
one top sheet row, one memo sequence). Because every aggregate moves by an
in-database delta inside a single unit of work, the final numbers must equal
the sum of the individual calls, with no lost update and no duplicate memo.
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from erpmini import create_app
from erpmini.extensions import db
from erpmini.models import Account, Branch, Customer, Employee, Order, Product, TopSheet, Transaction
from erpmini.services import order_service
from erpmini.services.lifecycle_service import OrderStateError


DAY = date(2026, 10, 17)
THREADS = 6
ORDERS_PER_THREAD = 3


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'erpmini-concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
    })
    with app.app_context():
        db.create_all()
        branch = Branch(name="Main Branch", code="MAIN")
        db.session.add(branch)
        db.session.flush()
        db.session.add_all([
            Account(branch_id=branch.id, name="Cash", type="cash", current_balance=Decimal("0")),
            Customer(branch_id=branch.id, name="Walk-in"),
            Employee(branch_id=branch.id, name="Salma", role="salesperson"),
            Product(branch_id=branch.id, product_name="Shirt", quantity=100),
        ])
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _ids(app):
    with app.app_context():
        return {
            "branch": db.session.query(Branch.id).scalar(),
            "account": db.session.query(Account.id).scalar(),
            "customer": db.session.query(Customer.id).scalar(),
            "salesperson": db.session.query(Employee.id).scalar(),
            "product": db.session.query(Product.id).scalar(),
        }


def _run_threads(target, count):
    barrier = threading.Barrier(count)
    errors = []

    def _worker(n):
        barrier.wait()
        try:
            target(n)
        except Exception as exc:  # collected and asserted by the caller
            errors.append(exc)

    threads = [threading.Thread(target=_worker, args=(n,)) for n in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)
    return errors


def test_concurrent_order_creation_keeps_aggregates_exact(file_app):
    ids = _ids(file_app)
    payload = {
        "order_date": DAY.isoformat(),
        "customer_id": ids["customer"],
        "salesperson_id": ids["salesperson"],
        "payment_account_id": ids["account"],
        "total_payable_amount": "100.00",
        "advance_payment_amount": "10.00",
        "items": [{"product_id": ids["product"], "quantity": 2, "subtotal": "100.00"}],
    }

    def create_orders(_):
        with file_app.app_context():
            for _ in range(ORDERS_PER_THREAD):
                order_service.create_order(ids["branch"], dict(payload))

    errors = _run_threads(create_orders, THREADS)
    assert errors == []

    total_orders = THREADS * ORDERS_PER_THREAD
    with file_app.app_context():
        memos = [m for (m,) in db.session.query(Order.memo_no).all()]
        assert len(memos) == total_orders
        assert sorted(memos) == [f"ORD-{ids['branch']:03d}-{n:04d}" for n in range(1, total_orders + 1)]

        assert db.session.get(Account, ids["account"]).current_balance == Decimal("10") * total_orders
        assert db.session.get(Customer, ids["customer"]).due_amount == Decimal("90") * total_orders

        sheets = db.session.query(TopSheet).all()
        assert len(sheets) == 1
        assert sheets[0].pending == 2 * total_orders
        assert sheets[0].cash == Decimal("10") * total_orders
        assert db.session.query(Transaction).count() == total_orders


def test_concurrent_deliveries_never_overshoot(file_app):
    ids = _ids(file_app)
    with file_app.app_context():
        order = order_service.create_order(ids["branch"], {
            "order_date": DAY.isoformat(),
            "customer_id": ids["customer"],
            "salesperson_id": ids["salesperson"],
            "total_payable_amount": "500.00",
            "items": [{"product_id": ids["product"], "quantity": 5, "subtotal": "500.00"}],
        })
        order_service.checkout_order(ids["branch"], order.id, on_date=DAY)
        order_id = order.id

    def deliver(_):
        with file_app.app_context():
            order_service.confirm_delivery(
                ids["branch"], order_id, {"items_to_deliver": 2, "exit_date": DAY.isoformat()}
            )

    errors = _run_threads(deliver, THREADS)
    assert all(isinstance(e, OrderStateError) for e in errors)
    assert len(errors) == THREADS - 3

    with file_app.app_context():
        order = db.session.get(Order, order_id)
        assert order.items_delivered == 5
        sheet = db.session.query(TopSheet).one()
        assert sheet.checkout == 0
        assert sheet.delivery == 5


def test_deliveries_on_different_orders_share_one_top_sheet_row(file_app):
    ids = _ids(file_app)
    order_ids = []
    with file_app.app_context():
        for _ in range(THREADS):
            order = order_service.create_order(ids["branch"], {
                "order_date": DAY.isoformat(),
                "customer_id": ids["customer"],
                "salesperson_id": ids["salesperson"],
                "payment_account_id": ids["account"],
                "total_payable_amount": "300.00",
                "items": [{"product_id": ids["product"], "quantity": 3, "subtotal": "300.00"}],
            })
            order_service.checkout_order(ids["branch"], order.id, on_date=DAY)
            order_ids.append(order.id)

    def deliver(n):
        with file_app.app_context():
            order_service.confirm_delivery(ids["branch"], order_ids[n], {
                "items_to_deliver": 3,
                "paid_amount": "300.00",
                "exit_date": DAY.isoformat(),
            })

    errors = _run_threads(deliver, THREADS)
    assert errors == []

    with file_app.app_context():
        sheet = db.session.query(TopSheet).one()
        assert sheet.checkout == 0
        assert sheet.delivery == 3 * THREADS
        assert sheet.cash == Decimal("300") * THREADS
        assert db.session.get(Account, ids["account"]).current_balance == Decimal("300") * THREADS
        assert db.session.get(Customer, ids["customer"]).due_amount == Decimal("0")
