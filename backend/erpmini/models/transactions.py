from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z
from erpmini.validation import format_amount


ENTITY_TYPES = ("accounts", "customers", "employees", "suppliers", "branches")
TRANSACTION_TYPES = ("payment", "refund", "adjustment", "salary")


class Transaction(db.Model):
    """
    Append-only money movement between two typed parties.

    INVARIANTS:
    - Rows are inserted inside the same DB transaction as the business event.
    - Rows are never updated or deleted; corrections are new "adjustment" rows
      carrying a signed amount.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_branch_created", "branch_id", "created_at"),
        db.Index("ix_transactions_from", "from_entity_type", "from_entity_id"),
        db.Index("ix_transactions_to", "to_entity_type", "to_entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # Public reference (e.g., "TX-1A2B3C4D5E6F")
    transaction_id = db.Column(db.String(64), nullable=False, unique=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    memo_no = db.Column(db.String(64), nullable=True, index=True)

    from_entity_id = db.Column(db.Integer, nullable=False)
    from_entity_type = db.Column(db.String(16), nullable=False)
    to_entity_id = db.Column(db.Integer, nullable=False)
    to_entity_type = db.Column(db.String(16), nullable=False)

    # Signed for adjustments, positive otherwise
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "branch_id": self.branch_id,
            "memo_no": self.memo_no,
            "from_entity_id": self.from_entity_id,
            "from_entity_type": self.from_entity_type,
            "to_entity_id": self.to_entity_id,
            "to_entity_type": self.to_entity_type,
            "amount": format_amount(self.amount),
            "transaction_type": self.transaction_type,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
