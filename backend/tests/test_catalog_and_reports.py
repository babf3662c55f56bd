# Overview: Pytest coverage for branches, parties, products, restocking and reports.

from datetime import date, timedelta
from decimal import Decimal

import pytest

from erpmini.extensions import db
from erpmini.models import Product
from erpmini.services import (
    branch_service,
    inventory_service,
    order_service,
    party_service,
    reporting_service,
)
from erpmini.validation import ConflictError, NotFoundError, ValidationError


DAY = date(2026, 10, 17)


class TestBranchesAndAccounts:

    def test_create_branch_and_accounts(self, db_session):
        branch = branch_service.create_branch({"name": "Harbour", "code": "HBR"})
        account = branch_service.create_account(branch.id, {
            "name": "Till", "type": "cash", "current_balance": "250.00",
        })

        assert account.current_balance == Decimal("250")
        assert [a.id for a in branch_service.list_accounts(branch.id, account_type="cash")] == [account.id]
        assert branch_service.list_accounts(branch.id, account_type="bank") == []

    def test_duplicate_branch(self, db_session, branch):
        with pytest.raises(ConflictError):
            branch_service.create_branch({"name": branch.name})
        with pytest.raises(ConflictError):
            branch_service.create_branch({"name": "Another", "code": branch.code})

    def test_account_type_validated(self, db_session, branch):
        with pytest.raises(ValidationError):
            branch_service.create_account(branch.id, {"name": "Wallet", "type": "wallet"})

    def test_account_for_unknown_branch(self, db_session):
        with pytest.raises(NotFoundError):
            branch_service.create_account(31337, {"name": "Cash", "type": "cash"})


class TestParties:

    def test_customer_mobile_unique_per_branch(self, db_session, branch, other_branch, customer):
        with pytest.raises(ConflictError):
            party_service.create_customer(branch.id, {"name": "Copy", "mobile": customer.mobile})
        moved = party_service.create_customer(other_branch.id, {"name": "Copy", "mobile": customer.mobile})
        assert moved.branch_id == other_branch.id

    def test_customer_search(self, db_session, branch, customer, other_customer):
        found = party_service.list_customers(branch.id, search="Karim")
        assert [c.id for c in found] == [other_customer.id]

    def test_employee_role_validated(self, db_session, branch):
        with pytest.raises(ValidationError):
            party_service.create_employee(branch.id, {"name": "X", "role": "pilot"})
        worker = party_service.create_employee(branch.id, {"name": "Rafiq", "role": "worker"})
        assert [e.id for e in party_service.list_employees(branch.id, role="worker")] == [worker.id]

    def test_unknown_field_rejected(self, db_session, branch):
        with pytest.raises(ValidationError):
            party_service.create_supplier(branch.id, {"name": "S", "due_amount": "5"})


class TestInventory:

    def test_duplicate_product(self, db_session, branch, products):
        with pytest.raises(ConflictError):
            inventory_service.create_product(branch.id, {"product_name": "Shirt"})

    def test_negative_opening_stock(self, db_session, branch):
        with pytest.raises(ValidationError):
            inventory_service.create_product(branch.id, {"product_name": "Cap", "quantity": -1})

    def test_restock_merges_lines(self, db_session, branch, products):
        shirt, trousers = products
        memo, entries = inventory_service.restock_products(branch.id, {
            "stock_date": DAY.isoformat(),
            "items": [
                {"product_id": shirt.id, "quantity": 5},
                {"product_id": trousers.id, "quantity": 2},
                {"product_id": shirt.id, "quantity": 3},
            ],
        })

        assert memo == f"STK-{branch.id:03d}-0001"
        assert len(entries) == 2
        assert db.session.get(Product, shirt.id).quantity == 58
        assert db.session.get(Product, trousers.id).quantity == 32
        assert len(inventory_service.list_stock_registry(branch.id, memo_no=memo)) == 2

    def test_restock_unknown_product(self, db_session, branch, products):
        shirt, _ = products
        with pytest.raises(NotFoundError):
            inventory_service.restock_products(branch.id, {"items": [
                {"product_id": shirt.id, "quantity": 1},
                {"product_id": 8080, "quantity": 1},
            ]})
        assert db.session.get(Product, shirt.id).quantity == 50

    def test_in_stock_filter(self, db_session, branch, products):
        inventory_service.create_product(branch.id, {"product_name": "Belt"})
        names = [p.product_name for p in inventory_service.list_products(branch.id, in_stock_only=True)]
        assert names == ["Shirt", "Trousers"]


class TestReports:

    def test_top_sheet_report_totals(self, db_session, branch, order_payload):
        next_day = DAY + timedelta(days=1)
        order_service.create_order(branch.id, order_payload())
        order_service.create_order(branch.id, order_payload(order_date=next_day.isoformat()))

        report = reporting_service.top_sheet_report(branch.id, start_date=DAY, end_date=next_day)
        assert [r["sheet_date"] for r in report["rows"]] == [DAY.isoformat(), next_day.isoformat()]
        assert report["totals"]["pending"] == 10
        assert report["totals"]["cash"] == "400.00"

        only_first = reporting_service.top_sheet_report(branch.id, end_date=DAY)
        assert len(only_first["rows"]) == 1

    def test_employee_progress_report(self, db_session, branch, order_payload, salesperson):
        order_service.create_order(branch.id, order_payload())
        report = reporting_service.employee_progress_report(branch.id, employee_id=salesperson.id)
        assert report["rows"][0]["employee_name"] == salesperson.name
        assert report["totals"]["order_count"] == 5
        assert report["totals"]["salary"] == "0.00"

    def test_inverted_range(self, db_session, branch):
        with pytest.raises(ValidationError):
            reporting_service.top_sheet_report(branch.id, start_date=DAY, end_date=DAY - timedelta(days=1))
