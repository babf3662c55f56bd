from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z, to_iso_date
from erpmini.validation import format_amount


class Sale(db.Model):
    """
    Immediate (ready-made) retail sale.

    WHY: Unlike orders there is no lifecycle; an edit reverses every effect of
    the previous version and applies the new one (services/sales_service.py).
    """
    __tablename__ = "sales_history"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "memo_no", name="uq_sales_branch_memo"),
        db.Index("ix_sales_branch_date", "branch_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    memo_no = db.Column(db.String(64), nullable=False)
    sale_date = db.Column(db.Date, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    payment_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    total_payable_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SoldItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SoldItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "memo_no": self.memo_no,
            "sale_date": to_iso_date(self.sale_date),
            "customer_id": self.customer_id,
            "salesperson_id": self.salesperson_id,
            "payment_account_id": self.payment_account_id,
            "total_payable_amount": format_amount(self.total_payable_amount),
            "paid_amount": format_amount(self.paid_amount),
            "total_items": self.total_items,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SoldItem(db.Model):
    __tablename__ = "sold_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sold_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales_history.id"), nullable=False, index=True)
    memo_no = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "memo_no": self.memo_no,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity": self.quantity,
            "total_price": format_amount(self.total_price),
        }
