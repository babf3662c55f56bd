from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z, to_iso_date


class Product(db.Model):
    """Ready-made product with its current stock level."""
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "product_name", name="uq_products_branch_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    # Current stock level; moved by additive deltas (restock, sale, sale update)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockRegistryEntry(db.Model):
    """Append-only restock log. One row per product per restock memo."""
    __tablename__ = "product_stock_registry"
    __table_args__ = (
        db.Index("ix_stock_registry_branch_date", "branch_id", "stock_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    memo_no = db.Column(db.String(64), nullable=False, index=True)
    stock_date = db.Column(db.Date, nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "memo_no": self.memo_no,
            "stock_date": to_iso_date(self.stock_date),
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "product_name": self.product.product_name if self.product else None,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }
