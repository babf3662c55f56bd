# Overview: Pytest coverage for purchases, salary, worker progress and due collection.

from datetime import date, timedelta
from decimal import Decimal

import pytest

from erpmini.extensions import db
from erpmini.models import Account, Customer, Supplier
from erpmini.services import (
    ledger_service,
    party_service,
    payroll_service,
    purchase_service,
    reporting_service,
)
from erpmini.validation import NotFoundError, ValidationError


DAY = date(2026, 10, 17)


def _balance(account):
    return db.session.get(Account, account.id).current_balance


class TestPurchases:

    def test_create_debits_cash_and_books_expense(self, db_session, branch, cash_account, supplier):
        purchase = purchase_service.create_purchase(branch.id, {
            "supplier_id": supplier.id,
            "total_amount": "300.00",
            "purchase_date": DAY.isoformat(),
        })

        assert purchase.memo_no == f"PUR-{branch.id:03d}-0001"
        assert _balance(cash_account) == Decimal("-300")
        assert reporting_service.get_top_sheet(branch.id, DAY).expense == Decimal("300")

        entries = ledger_service.list_transactions(branch_id=branch.id, memo_no=purchase.memo_no)
        assert len(entries) == 1
        assert entries[0].from_entity_type == "accounts"
        assert entries[0].to_entity_type == "suppliers"
        assert entries[0].notes == "Payment for Material Purchase"

    def test_requires_branch_cash_account(self, db_session, branch, supplier):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase(branch.id, {"supplier_id": supplier.id, "total_amount": "10"})

    def test_auto_memo_skips_manual_purchase_memo(self, db_session, branch, cash_account, supplier):
        payload = {"supplier_id": supplier.id, "total_amount": "50.00", "purchase_date": DAY.isoformat()}
        purchase_service.create_purchase(branch.id, dict(payload, memo_no=f"PUR-{branch.id:03d}-0001"))
        purchase = purchase_service.create_purchase(branch.id, payload)
        assert purchase.memo_no == f"PUR-{branch.id:03d}-0002"
        assert _balance(cash_account) == Decimal("-100")

    def test_update_posts_difference(self, db_session, branch, cash_account, supplier):
        purchase = purchase_service.create_purchase(branch.id, {
            "supplier_id": supplier.id, "total_amount": "300.00", "purchase_date": DAY.isoformat(),
        })
        purchase_service.update_purchase(branch.id, purchase.id, {"total_amount": "500.00"})

        assert _balance(cash_account) == Decimal("-500")
        assert reporting_service.get_top_sheet(branch.id, DAY).expense == Decimal("500")
        adjustments = ledger_service.list_transactions(
            branch_id=branch.id, memo_no=purchase.memo_no, transaction_type="adjustment"
        )
        assert [a.amount for a in adjustments] == [Decimal("200")]

    def test_update_date_and_supplier(self, db_session, branch, cash_account, supplier):
        other = Supplier(branch_id=branch.id, name="Button World")
        db_session.add(other)
        db_session.commit()
        new_day = DAY + timedelta(days=1)

        purchase = purchase_service.create_purchase(branch.id, {
            "supplier_id": supplier.id, "total_amount": "300.00", "purchase_date": DAY.isoformat(),
        })
        purchase = purchase_service.update_purchase(branch.id, purchase.id, {
            "supplier_id": other.id,
            "purchase_date": new_day.isoformat(),
        })

        assert purchase.supplier_id == other.id
        assert _balance(cash_account) == Decimal("-300")
        assert reporting_service.get_top_sheet(branch.id, DAY).expense == Decimal("0")
        assert reporting_service.get_top_sheet(branch.id, new_day).expense == Decimal("300")

        adjustments = list(reversed(ledger_service.list_transactions(
            branch_id=branch.id, memo_no=purchase.memo_no, transaction_type="adjustment"
        )))
        assert [(a.to_entity_id, a.amount) for a in adjustments] == [
            (supplier.id, Decimal("-300")),
            (other.id, Decimal("300")),
        ]

    def test_unknown_supplier(self, db_session, branch, cash_account):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase(branch.id, {"supplier_id": 4040, "total_amount": "10"})

    def test_missing_total(self, db_session, branch, supplier):
        with pytest.raises(ValidationError):
            purchase_service.create_purchase(branch.id, {"supplier_id": supplier.id})


class TestPayroll:

    def test_submit_salary(self, db_session, branch, cash_account, worker):
        tx = payroll_service.submit_salary(branch.id, worker.id, {
            "amount": "1000.00", "salary_date": DAY.isoformat(),
        })

        assert tx.transaction_type == "salary"
        assert tx.from_entity_type == "accounts"
        assert tx.to_entity_type == "employees"
        assert tx.to_entity_id == worker.id
        assert _balance(cash_account) == Decimal("-1000")
        assert reporting_service.get_top_sheet(branch.id, DAY).expense == Decimal("1000")
        assert reporting_service.get_progress(worker.id, DAY).salary == Decimal("1000")

    def test_salary_amount_must_be_positive(self, db_session, branch, cash_account, worker):
        with pytest.raises(ValidationError):
            payroll_service.submit_salary(branch.id, worker.id, {"amount": "0"})

    def test_salary_unknown_employee(self, db_session, branch, cash_account):
        with pytest.raises(NotFoundError):
            payroll_service.submit_salary(branch.id, 5151, {"amount": "10"})

    def test_worker_progress_with_advance(self, db_session, branch, cash_account, worker):
        result = payroll_service.record_worker_progress(branch.id, worker.id, {
            "sheet_date": DAY.isoformat(),
            "production_units": 12,
            "overtime_hours": "2.5",
            "advance_payment": "100.00",
        })

        assert result["transaction"].notes == "Advance payment to worker"
        progress = reporting_service.get_progress(worker.id, DAY)
        assert progress.production_units == 12
        assert progress.overtime_hours == Decimal("2.5")
        assert progress.advance_payment == Decimal("100")
        assert _balance(cash_account) == Decimal("-100")
        assert reporting_service.get_top_sheet(branch.id, DAY).expense == Decimal("100")

    def test_worker_progress_without_advance(self, db_session, branch, worker):
        result = payroll_service.record_worker_progress(branch.id, worker.id, {
            "sheet_date": DAY.isoformat(), "production_units": 3,
        })
        assert result["transaction"] is None
        assert reporting_service.get_top_sheet(branch.id, DAY) is None

    def test_nothing_to_record(self, db_session, branch, worker):
        with pytest.raises(ValidationError):
            payroll_service.record_worker_progress(branch.id, worker.id, {})


class TestDueCollection:

    def test_collect_due(self, db_session, branch, bank_account, customer):
        customer.due_amount = Decimal("800.00")
        db_session.commit()

        result = party_service.collect_customer_due(branch.id, customer.id, {
            "amount": "300.00",
            "payment_account_id": bank_account.id,
            "payment_date": DAY.isoformat(),
        })

        assert result["amount"] == Decimal("300")
        assert result["transaction"].notes == "Due collection"
        assert db.session.get(Customer, customer.id).due_amount == Decimal("500")
        assert _balance(bank_account) == Decimal("300")
        assert reporting_service.get_top_sheet(branch.id, DAY).bank == Decimal("300")

    def test_amount_required(self, db_session, branch, cash_account, customer):
        with pytest.raises(ValidationError):
            party_service.collect_customer_due(branch.id, customer.id, {"payment_account_id": cash_account.id})
        with pytest.raises(ValidationError):
            party_service.collect_customer_due(
                branch.id, customer.id, {"amount": "0", "payment_account_id": cash_account.id}
            )
