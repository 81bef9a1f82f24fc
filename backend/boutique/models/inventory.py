from __future__ import annotations

from ..extensions import db
from boutique.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    A stocked article (one size/color variant of a garment).

    Amounts are stored in cents. quantity is allowed to go negative when the
    store permits overselling (see Config.ALLOW_NEGATIVE_STOCK); nothing at the
    schema level forbids it.

    Invoices keep their own snapshot of name/category/price, so deleting an
    item never cascades into invoice history.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)
    size = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(32), nullable=True)

    # Selling price and purchase cost, in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    supplier = db.Column(db.String(255), nullable=True)

    date_added = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "size": self.size,
            "color": self.color,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "quantity": self.quantity,
            "supplier": self.supplier,
            "date_added": to_utc_z(self.date_added),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    """Inventory category list, editable from settings."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "position": self.position}
