# Overview: Append-only transaction ledger.

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from ..extensions import db
from ..models import Transaction
from ..models.transactions import ENTITY_TYPES, TRANSACTION_TYPES
"""
Transaction Ledger Invariants (authoritative)

- Append-only record of money movement between two typed parties.
- Entries are written inside the same DB transaction as the business event.
- No updates or deletes. A correction is a new "adjustment" entry whose
  amount is the signed difference.
"""


def new_transaction_reference() -> str:
    return f"TX-{uuid.uuid4().hex[:12].upper()}"


def record_transaction(
    *,
    branch_id: int,
    memo_no: Optional[str],
    from_entity_type: str,
    from_entity_id: int,
    to_entity_type: str,
    to_entity_id: int,
    amount: Decimal,
    transaction_type: str,
    notes: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> Transaction:
    """
    Append a ledger entry.

    - No domain logic here.
    - transaction_id is generated when not supplied.
    """
    if from_entity_type not in ENTITY_TYPES:
        raise ValueError(f"Invalid from_entity_type '{from_entity_type}'")
    if to_entity_type not in ENTITY_TYPES:
        raise ValueError(f"Invalid to_entity_type '{to_entity_type}'")
    if transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f"Invalid transaction_type '{transaction_type}'")

    tx = Transaction(
        transaction_id=transaction_id or new_transaction_reference(),
        branch_id=branch_id,
        memo_no=memo_no,
        from_entity_type=from_entity_type,
        from_entity_id=from_entity_id,
        to_entity_type=to_entity_type,
        to_entity_id=to_entity_id,
        amount=amount,
        transaction_type=transaction_type,
        notes=notes,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def list_transactions(
    *,
    branch_id: int,
    memo_no: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    transaction_type: str | None = None,
    from_date=None,
    to_date=None,
    limit: int = 200,
) -> list[Transaction]:
    """Read API: newest first. from_date/to_date filter on created_at (inclusive)."""
    query = db.session.query(Transaction).filter(Transaction.branch_id == branch_id)
    if memo_no:
        query = query.filter(Transaction.memo_no == memo_no)
    if entity_type:
        party_from = Transaction.from_entity_type == entity_type
        party_to = Transaction.to_entity_type == entity_type
        if entity_id:
            party_from = party_from & (Transaction.from_entity_id == entity_id)
            party_to = party_to & (Transaction.to_entity_id == entity_id)
        query = query.filter(party_from | party_to)
    if transaction_type:
        query = query.filter(Transaction.transaction_type == transaction_type)
    if from_date:
        query = query.filter(Transaction.created_at >= from_date)
    if to_date:
        query = query.filter(Transaction.created_at <= to_date)

    if limit < 1:
        limit = 1
    if limit > 1000:
        limit = 1000
    return query.order_by(Transaction.id.desc()).limit(limit).all()
