# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

SALE_DOCUMENT = "SALE"
PURCHASE_DOCUMENT = "PURCHASE"
SALES_RETURN_DOCUMENT = "SALES_RETURN"

DOCUMENT_PREFIXES = {
    SALE_DOCUMENT: "SO",
    PURCHASE_DOCUMENT: "PO",
    SALES_RETURN_DOCUMENT: "SR",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_next_number(company_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    )


def next_document_number(
    *,
    company_id: int,
    document_type: str,
    pad: int = 5,
) -> str:
    """
    Allocate the next document number for a company/type.

    Runs inside the caller's unit of work: the counter increment commits or
    rolls back together with the document that uses it. The UPDATE takes a
    row lock on (company_id, document_type) so two concurrent allocations
    serialize. The company id is part of the number, which keeps numbers
    unique across tenants.
    """
    if not company_id:
        raise DocumentSequenceError("company_id is required")
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document_type '{document_type}'")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.company_id == company_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_next_number(company_id, document_type) - 1
    else:
        try:
            # Savepoint so a lost insert race only discards this row
            with db.session.begin_nested():
                db.session.add(
                    DocumentSequence(company_id=company_id, document_type=document_type, next_number=2)
                )
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_next_number(company_id, document_type) - 1

    return f"{prefix}-{company_id:03d}-{next_num:0{pad}d}"
