from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z
from erpmini.validation import format_amount


class Customer(db.Model):
    """
    Customer with a running due_amount (what the customer owes the branch).

    due_amount tracks sum(total_payable - paid) over the customer's live
    orders and sales. It is maintained incrementally by the order and sale
    engines and by due collection; it is never recomputed from scratch.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "mobile", name="uq_customers_branch_mobile"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    mobile = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.Boolean, nullable=False, default=True)

    # Denormalized aggregate (additive deltas only)
    due_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "mobile": self.mobile,
            "address": self.address,
            "tax_id": self.tax_id,
            "status": self.status,
            "due_amount": format_amount(self.due_amount),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    mobile = db.Column(db.String(32), nullable=True)
    status = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "mobile": self.mobile,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Employee(db.Model):
    """
    Employee (salesperson, worker, admin...).

    Salespeople are credited with order/sale progress; workers with production
    units, overtime and advance payments (see models/rollups.py).
    """
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(32), nullable=False, default="salesperson")
    status = db.Column(db.String(16), nullable=False, default="active")
    mobile = db.Column(db.String(32), nullable=True)
    base_salary = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    overtime_rate = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "role": self.role,
            "status": self.status,
            "mobile": self.mobile,
            "base_salary": format_amount(self.base_salary),
            "overtime_rate": format_amount(self.overtime_rate),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
