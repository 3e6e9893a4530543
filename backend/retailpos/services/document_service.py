# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..models import DocumentSequence


DOC_CASH_SALE = "SALE"
DOC_INSTALLMENT_SALE = "INSTALLMENT"

DOCUMENT_PREFIXES = {
    DOC_CASH_SALE: "S",
    DOC_INSTALLMENT_SALE: "I",
}


def next_document_number(session, *, document_type: str, pad: int = 6) -> str:
    """
    Allocate the next document number for a type inside the caller's
    transaction.

    The UPDATE takes a row lock on the sequence; the first allocation for a
    type inserts the row under a savepoint so a concurrent first insert only
    retries the UPDATE instead of aborting the outer transaction.
    """
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise ValidationError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _current() -> int:
        return (
            session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )

    result = session.execute(stmt)
    if result.rowcount:
        next_num = _current() - 1
    else:
        try:
            with session.begin_nested():
                session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            result = session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current() - 1

    return f"{prefix}-{next_num:0{pad}d}"
