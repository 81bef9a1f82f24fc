from __future__ import annotations

from ..extensions import db
from boutique.time_utils import to_utc_z


class Invoice(db.Model):
    """
    Sales invoice.

    Immutable once created, except for administrative header edits and
    deletion. Totals are computed once at creation time by
    totals_service.calculate_invoice_totals and stored, never recomputed.

    invoice_number is the human-readable INV{YY}{MM}{NNNN} identifier, taken
    from the "invoice" DocumentSequence. Deleting an invoice does not lower
    the sequence; the unique constraint is the last guard against reuse.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_date", "date"),
        db.Index("ix_invoices_customer_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Bill-to snapshot; customer_id is optional (walk-in sales)
    customer_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)

    payment_method = db.Column(db.String(32), nullable=False, default="Cash")

    # All amounts in cents; rates in basis points (1800 = 18%)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} total_cents={self.total_cents}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "date": to_utc_z(self.date),
            "customer_name": self.customer_name,
            "phone": self.phone,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    Denormalized snapshot of an inventory item at the time of sale.

    item_id is deliberately not a foreign key: the source item may be edited
    or deleted later and the invoice must still read the same.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    item_id = db.Column(db.Integer, nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Purchase cost at time of sale, used by profit reports
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }
