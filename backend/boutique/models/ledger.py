from __future__ import annotations

from ..extensions import db
from boutique.time_utils import to_utc_z


class ChangeEvent(db.Model):
    """
    Append-only record of every mutation to a synced collection.

    Clients keep a local copy of inventory/invoices/customers/settings and
    poll GET /api/changes?after=<last id> to learn what to refetch.
    """
    __tablename__ = "change_events"
    __table_args__ = (
        db.Index("ix_change_events_collection_id", "collection", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # inventory, invoices, customers, settings.profile, settings.categories
    collection = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    # created, updated, deleted
    action = db.Column(db.String(16), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    note = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection": self.collection,
            "entity_id": self.entity_id,
            "action": self.action,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
        }
