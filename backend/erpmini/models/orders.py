from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from erpmini.time_utils import to_utc_z, to_iso_date
from erpmini.validation import format_amount


class Order(db.Model):
    """
    Customer order (made-to-order goods delivered in one or more batches).

    WHY: An order moves pending -> checkout -> delivery (possibly over several
    partial deliveries) or jumps to cancelled. Every transition posts deltas
    into accounts, customer due, the branch top sheet, employee progress and
    the transaction ledger; the header itself is the only row the engine
    writes by value. See services/order_service.py.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "memo_no", name="uq_orders_branch_memo"),
        db.CheckConstraint("items_delivered >= 0", name="ck_orders_delivered_nonneg"),
        db.CheckConstraint("items_delivered <= total_items", name="ck_orders_delivered_le_total"),
        db.Index("ix_orders_branch_status_date", "branch_id", "status", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Human-readable memo number (e.g., "ORD-001-0042")
    memo_no = db.Column(db.String(64), nullable=False)
    order_date = db.Column(db.Date, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    salesperson_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    payment_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    total_payable_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    # Advance at creation plus every payment taken at delivery
    advance_payment_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Lifecycle status (see services/lifecycle_service.py)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    total_items = db.Column(db.Integer, nullable=False, default=0)
    items_delivered = db.Column(db.Integer, nullable=False, default=0)

    delivery_date = db.Column(db.Date, nullable=True)
    exit_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_items(self) -> int:
        return (self.total_items or 0) - (self.items_delivered or 0)

    @property
    def is_partially_delivered(self) -> bool:
        return 0 < (self.items_delivered or 0) < (self.total_items or 0)

    @property
    def due_amount(self) -> Decimal:
        """Outstanding balance on this order, floored at zero."""
        due = Decimal(self.total_payable_amount or 0) - Decimal(self.advance_payment_amount or 0)
        return due if due > 0 else Decimal("0")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "memo_no": self.memo_no,
            "order_date": to_iso_date(self.order_date),
            "customer_id": self.customer_id,
            "salesperson_id": self.salesperson_id,
            "payment_account_id": self.payment_account_id,
            "total_payable_amount": format_amount(self.total_payable_amount),
            "advance_payment_amount": format_amount(self.advance_payment_amount),
            "due_amount": format_amount(self.due_amount),
            "status": self.status,
            "total_items": self.total_items,
            "items_delivered": self.items_delivered,
            "is_partially_delivered": self.is_partially_delivered,
            "delivery_date": to_iso_date(self.delivery_date),
            "exit_date": to_iso_date(self.exit_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line item on an order. Diffed by product_id when the order is edited."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    memo_no = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "memo_no": self.memo_no,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity": self.quantity,
            "subtotal": format_amount(self.subtotal),
        }
