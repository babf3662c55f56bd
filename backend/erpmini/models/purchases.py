from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z, to_iso_date
from erpmini.validation import format_amount


class Purchase(db.Model):
    """Material purchase paid from the branch cash account."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "memo_no", name="uq_purchases_branch_memo"),
        db.Index("ix_purchases_branch_date", "branch_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    memo_no = db.Column(db.String(64), nullable=False)
    purchase_date = db.Column(db.Date, nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "memo_no": self.memo_no,
            "purchase_date": to_iso_date(self.purchase_date),
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "total_amount": format_amount(self.total_amount),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
