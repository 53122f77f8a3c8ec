# Overview: Service-layer operations for document numbering; allocates monotonic human-readable numbers.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import get_locks


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        return current - 1

    # First number of this type; the sequence lock rules out a concurrent insert
    seq = DocumentSequence(document_type=document_type, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a type, e.g. TXN0001.

    Runs inside the caller's DB transaction (flush, no commit) so the number
    is only consumed when the document itself commits. The counter row is
    only ever incremented, so a number is never issued twice, even after the
    document carrying it is gone. Callers that must keep other writers off
    the counter until their commit hold get_locks().sequence_lock around the
    call; it is re-entrant.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    with get_locks().sequence_lock:
        next_num = _allocate(document_type)

    return f"{prefix}{next_num:0{pad}d}"

