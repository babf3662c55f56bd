"""
Pytest fixtures for ERP Mini backend tests.

Provides the in-memory test database, a branch with cash and bank accounts,
the parties an order needs, and a test client.
"""

from datetime import date
from decimal import Decimal

import pytest

from erpmini import create_app
from erpmini.extensions import db
from erpmini.models import Account, Branch, Customer, Employee, Product, Supplier


ORDER_DAY = date(2026, 10, 17)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def branch(db_session):
    branch = Branch(name="Main Branch", code="MAIN")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def other_branch(db_session):
    branch = Branch(name="Uptown", code="UPT")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def cash_account(db_session, branch):
    account = Account(branch_id=branch.id, name="Cash", type="cash", current_balance=Decimal("0.00"))
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def bank_account(db_session, branch):
    account = Account(branch_id=branch.id, name="Bank", type="bank", current_balance=Decimal("0.00"))
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def customer(db_session, branch):
    customer = Customer(branch_id=branch.id, name="Rahim Uddin", mobile="01700000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def other_customer(db_session, branch):
    customer = Customer(branch_id=branch.id, name="Karim Ali", mobile="01700000002")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def salesperson(db_session, branch):
    employee = Employee(branch_id=branch.id, name="Salma", role="salesperson")
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def other_salesperson(db_session, branch):
    employee = Employee(branch_id=branch.id, name="Nadia", role="salesperson")
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def worker(db_session, branch):
    employee = Employee(branch_id=branch.id, name="Jamal", role="worker", overtime_rate=Decimal("50.00"))
    db_session.add(employee)
    db_session.commit()
    return employee


@pytest.fixture(scope='function')
def supplier(db_session, branch):
    supplier = Supplier(branch_id=branch.id, name="Fabric House")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def products(db_session, branch):
    """Two products: a shirt (50 in stock) and trousers (30 in stock)."""
    shirt = Product(branch_id=branch.id, product_name="Shirt", quantity=50)
    trousers = Product(branch_id=branch.id, product_name="Trousers", quantity=30)
    db_session.add_all([shirt, trousers])
    db_session.commit()
    return shirt, trousers


@pytest.fixture(scope='function')
def order_payload(customer, salesperson, cash_account, products):
    """Factory for an order payload: 3 shirts + 2 trousers, payable 1000."""
    shirt, trousers = products

    def _make(**overrides):
        payload = {
            "order_date": ORDER_DAY.isoformat(),
            "customer_id": customer.id,
            "salesperson_id": salesperson.id,
            "payment_account_id": cash_account.id,
            "total_payable_amount": "1000.00",
            "advance_payment_amount": "200.00",
            "items": [
                {"product_id": shirt.id, "quantity": 3, "subtotal": "600.00"},
                {"product_id": trousers.id, "quantity": 2, "subtotal": "400.00"},
            ],
        }
        payload.update(overrides)
        return payload

    return _make


def branch_headers(branch_id: int) -> dict:
    """Helper to create X-Branch-ID headers."""
    return {'X-Branch-ID': str(branch_id)}
