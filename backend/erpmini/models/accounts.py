from __future__ import annotations

from ..extensions import db
from erpmini.time_utils import to_utc_z
from erpmini.validation import format_amount


ACCOUNT_TYPE_CASH = "cash"
ACCOUNT_TYPE_BANK = "bank"
ACCOUNT_TYPES = (ACCOUNT_TYPE_CASH, ACCOUNT_TYPE_BANK)


class Account(db.Model):
    """
    Cash or bank account of a branch.

    current_balance is a running total. It only ever moves by additive deltas
    (see services/balance_service.py), never by overwriting.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.CheckConstraint("type IN ('cash', 'bank')", name="ck_accounts_type"),
        db.Index("ix_accounts_branch_type", "branch_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=ACCOUNT_TYPE_CASH)
    current_balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("accounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "type": self.type,
            "current_balance": format_amount(self.current_balance),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
