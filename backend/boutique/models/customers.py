from __future__ import annotations

from ..extensions import db
from boutique.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data for tracking purchases.

    total_spent_cents / visit_count / last_visit_at are denormalized aggregates,
    updated inside the invoice creation transaction. Editing or deleting an
    invoice afterwards does not recompute them.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_phone", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Denormalized aggregates (updated when invoices are created)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    visit_count = db.Column(db.Integer, nullable=False, default=0)
    last_visit_at = db.Column(db.DateTime(timezone=True), nullable=True)

    date_added = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "total_spent_cents": self.total_spent_cents,
            "visit_count": self.visit_count,
            "last_visit_at": to_utc_z(self.last_visit_at) if self.last_visit_at else None,
            "date_added": to_utc_z(self.date_added),
            "updated_at": to_utc_z(self.updated_at),
        }
