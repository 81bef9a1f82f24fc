from __future__ import annotations

from ..extensions import db
from boutique.time_utils import to_utc_z


class BusinessProfile(db.Model):
    """
    Singleton business metadata printed on invoices, reports and share links.

    Exactly one row is expected; settings_service.get_profile() creates it on
    first access.
    """
    __tablename__ = "business_profile"

    id = db.Column(db.Integer, primary_key=True)

    business_name = db.Column(db.String(255), nullable=False, default="Aleen Clothing")
    owner_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gstin = db.Column(db.String(32), nullable=True)
    description = db.Column(db.Text, nullable=True)
    established = db.Column(db.String(16), nullable=True)
    specialization = db.Column(db.String(255), nullable=True)

    # Default GST rate for new invoices, in basis points
    default_tax_rate_bps = db.Column(db.Integer, nullable=False, default=1800)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "business_name": self.business_name,
            "owner_name": self.owner_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "gstin": self.gstin,
            "description": self.description,
            "established": self.established,
            "specialization": self.specialization,
            "default_tax_rate_bps": self.default_tax_rate_bps,
            "updated_at": to_utc_z(self.updated_at),
        }
