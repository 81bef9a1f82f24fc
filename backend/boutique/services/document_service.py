# Overview: Human-readable invoice numbering backed by a monotonic sequence.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Invoice
from boutique.time_utils import utcnow


INVOICE_PREFIX = "INV"
INVOICE_SEQUENCE = "invoice"


def generate_invoice_number(count: int, now: datetime | None = None, *, pad: int = 4) -> str:
    """
    Format the number of the invoice that follows `count` earlier invoices.

    INV{YY}{MM}{NNNN}: two-digit year and month of `now`, then count + 1
    zero padded to `pad` digits (more digits once the count outgrows it).
    """
    now = now or utcnow()
    return f"{INVOICE_PREFIX}{now:%y}{now:%m}{count + 1:0{pad}d}"


def count_invoices() -> int:
    return int(db.session.query(func.count(Invoice.id)).scalar() or 0)


def _stored_next_number() -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=INVOICE_SEQUENCE)
        .scalar()
    )


def next_invoice_number(now: datetime | None = None) -> str:
    """Preview the number the next invoice will get. Allocates nothing."""
    next_number = _stored_next_number()
    if next_number is None:
        next_number = count_invoices() + 1
    return generate_invoice_number(next_number - 1, now)


def allocate_invoice_number(now: datetime | None = None) -> str:
    """
    Take the next invoice number from the sequence.

    The increment runs in SQL inside the caller's transaction: a rolled back
    invoice gives its number back, a deleted one does not. The first call
    seeds the sequence from the invoices already stored.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == INVOICE_SEQUENCE)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    if not db.session.execute(stmt).rowcount:
        issued = count_invoices() + 1
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=INVOICE_SEQUENCE, next_number=issued + 1))
            return generate_invoice_number(issued - 1, now)
        except IntegrityError:
            # Another writer seeded the row first
            if not db.session.execute(stmt).rowcount:
                raise

    issued = _stored_next_number() - 1
    return generate_invoice_number(issued - 1, now)
