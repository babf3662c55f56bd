# Overview: Memo number allocation per branch and document type.

from __future__ import annotations

import logging
import uuid

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import MemoSequence, Order, Purchase, Sale, StockRegistryEntry
from erpmini.validation import ConflictError


logger = logging.getLogger(__name__)

MEMO_PREFIXES = {
    "ORDER": "ORD",
    "SALE": "SAL",
    "PURCHASE": "PUR",
    "RESTOCK": "STK",
}

# Table holding the memo numbers of each document type
MEMO_DOCUMENTS = {
    "ORDER": Order,
    "SALE": Sale,
    "PURCHASE": Purchase,
    "RESTOCK": StockRegistryEntry,
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(branch_id: int, document_type: str) -> int:
    stmt = (
        update(MemoSequence)
        .where(
            MemoSequence.branch_id == branch_id,
            MemoSequence.document_type == document_type,
        )
        .values(next_number=MemoSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _current() -> int:
        current = (
            db.session.query(MemoSequence.next_number)
            .filter_by(branch_id=branch_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    if db.session.execute(stmt).rowcount:
        return _current()

    try:
        with db.session.begin_nested():
            db.session.add(MemoSequence(branch_id=branch_id, document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        if not db.session.execute(stmt).rowcount:
            raise
        return _current()


def memo_in_use(branch_id: int, document_type: str, memo_no: str) -> bool:
    model = MEMO_DOCUMENTS[document_type]
    found = db.session.query(model.id).filter_by(branch_id=branch_id, memo_no=memo_no).first()
    return found is not None


def flush_document(memo_no: str) -> None:
    """Flush a new document header; a unique-key clash becomes a ConflictError."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        if "memo_no" in str(exc.orig):
            raise ConflictError("Memo number already exists", details={"memo_no": memo_no}) from exc
        raise ConflictError(
            "Document conflicts with existing data",
            details={"memo_no": memo_no, "reason": str(exc.orig)},
        ) from exc


def random_memo_number(prefix: str, branch_id: int) -> str:
    return f"{prefix}-{branch_id:03d}-R{uuid.uuid4().hex[:8].upper()}"


def next_memo_number(*, branch_id: int, document_type: str, pad: int = 4) -> str:
    """
    Allocate the next memo number for a branch/document type (e.g. "ORD-001-0007").

    Runs inside the caller's unit of work under a SAVEPOINT. If the sequence
    cannot be advanced the savepoint is discarded and a random identifier is
    returned so the business operation can still proceed.

    Numbers already taken by a manually entered memo are consumed and skipped.
    """
    if not branch_id:
        raise DocumentSequenceError("branch_id is required")
    prefix = MEMO_PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document_type '{document_type}'")

    try:
        with db.session.begin_nested():
            while True:
                memo_no = f"{prefix}-{branch_id:03d}-{_allocate(branch_id, document_type):0{pad}d}"
                if not memo_in_use(branch_id, document_type, memo_no):
                    break
                logger.info("Memo %s already in use; skipping", memo_no)
    except SQLAlchemyError:
        logger.warning(
            "Memo sequence allocation failed for branch=%s type=%s; using random memo",
            branch_id,
            document_type,
            exc_info=True,
        )
        return random_memo_number(prefix, branch_id)

    return memo_no
