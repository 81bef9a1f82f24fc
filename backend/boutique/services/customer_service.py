# backend/boutique/services/customer_service.py
"""
Customer Service

total_spent_cents, visit_count and last_visit_at are not client-writable;
they move only inside invoice_service.create_invoice.
"""
from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Customer, Invoice
from ..validation import ModelValidationPolicy, NotFoundError
from .ledger_service import append_change_event
from boutique.time_utils import utcnow

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "notes"},
    required_on_create={"name"},
)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(*, search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.email.ilike(like))
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(patch: dict) -> Customer:
    customer = Customer(**patch)
    db.session.add(customer)
    db.session.flush()
    append_change_event(collection="customers", action="created", entity_id=customer.id)
    db.session.commit()
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer:
    customer = get_customer(customer_id)
    for k, v in patch.items():
        if k not in CUSTOMER_POLICY.writable_fields:
            continue
        setattr(customer, k, v)
    append_change_event(collection="customers", action="updated", entity_id=customer.id)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """
    Hard delete. Past invoices keep their bill-to snapshot (name, phone) and
    lose the link.
    """
    customer = get_customer(customer_id)
    db.session.query(Invoice).filter(Invoice.customer_id == customer_id).update(
        {Invoice.customer_id: None}, synchronize_session="fetch"
    )
    db.session.delete(customer)
    append_change_event(collection="customers", action="deleted", entity_id=customer_id)
    db.session.commit()


def customer_summary(now: datetime | None = None) -> dict:
    """Headline counts for the customers page."""
    now = now or utcnow()
    customers = db.session.query(Customer).all()
    return {
        "total_customers": len(customers),
        "repeat_customers": sum(1 for c in customers if c.visit_count > 1),
        "active_this_month": sum(
            1 for c in customers
            if c.last_visit_at and (c.last_visit_at.year, c.last_visit_at.month) == (now.year, now.month)
        ),
    }
