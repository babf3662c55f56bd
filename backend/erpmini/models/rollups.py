from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_iso_date
from erpmini.validation import format_amount


# Accumulator columns; services/rollup_service.py only accepts deltas for these
TOP_SHEET_COUNT_FIELDS = ("pending", "checkout", "delivery", "cancelled", "order_count", "ready_made")
TOP_SHEET_MONEY_FIELDS = ("cash", "bank", "expense")
PROGRESS_COUNT_FIELDS = ("order_count", "item_count", "production_units")
PROGRESS_MONEY_FIELDS = ("sale_amount", "sale_return_amount", "overtime_hours", "advance_payment", "salary")


class TopSheet(db.Model):
    """
    Daily per-branch accumulator ("top sheet").

    INVARIANTS:
    - One row per (branch_id, sheet_date), created on first touch.
    - Every field only moves by a signed delta in SQL (col = col + :delta).
    - Never deleted.
    """
    __tablename__ = "top_sheets"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "sheet_date", name="uq_top_sheets_branch_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    sheet_date = db.Column(db.Date, nullable=False, index=True)

    # Item counts
    pending = db.Column(db.Integer, nullable=False, default=0)
    checkout = db.Column(db.Integer, nullable=False, default=0)
    delivery = db.Column(db.Integer, nullable=False, default=0)
    cancelled = db.Column(db.Integer, nullable=False, default=0)
    order_count = db.Column(db.Integer, nullable=False, default=0)
    ready_made = db.Column(db.Integer, nullable=False, default=0)

    # Money
    cash = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    bank = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    expense = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "sheet_date": to_iso_date(self.sheet_date),
            "pending": self.pending,
            "checkout": self.checkout,
            "delivery": self.delivery,
            "cancelled": self.cancelled,
            "order_count": self.order_count,
            "ready_made": self.ready_made,
            "cash": format_amount(self.cash),
            "bank": format_amount(self.bank),
            "expense": format_amount(self.expense),
        }


class EmployeeProgress(db.Model):
    """
    Daily per-employee accumulator. Same discipline as TopSheet, keyed by
    (sheet_date, employee_id).
    """
    __tablename__ = "employee_progress"
    __table_args__ = (
        db.UniqueConstraint("sheet_date", "employee_id", name="uq_employee_progress_date_employee"),
        db.Index("ix_employee_progress_branch_date", "branch_id", "sheet_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sheet_date = db.Column(db.Date, nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    sale_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    sale_return_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    order_count = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)
    production_units = db.Column(db.Integer, nullable=False, default=0)
    overtime_hours = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    advance_payment = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    salary = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    employee = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sheet_date": to_iso_date(self.sheet_date),
            "employee_id": self.employee_id,
            "employee_name": self.employee.name if self.employee else None,
            "branch_id": self.branch_id,
            "sale_amount": format_amount(self.sale_amount),
            "sale_return_amount": format_amount(self.sale_return_amount),
            "order_count": self.order_count,
            "item_count": self.item_count,
            "production_units": self.production_units,
            "overtime_hours": format_amount(self.overtime_hours),
            "advance_payment": format_amount(self.advance_payment),
            "salary": format_amount(self.salary),
        }
