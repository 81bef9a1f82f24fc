# Overview: Service-layer operations for the change feed; append-only, no domain logic.

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import ChangeEvent

"""
Change feed invariants

- Append-only: events are never updated or deleted.
- Events are written inside the same DB transaction as the mutation they
  record, so a reader never sees an event for a rolled-back change.
- Event ids are the cursor: "after=<id>" is exclusive.
"""

COLLECTIONS = {
    "inventory",
    "invoices",
    "customers",
    "settings.profile",
    "settings.categories",
}

ACTIONS = {"created", "updated", "deleted"}


def append_change_event(
    *,
    collection: str,
    action: str,
    entity_id: int | None = None,
    note: Optional[str] = None,
) -> ChangeEvent:
    """Record a mutation. Flushes but never commits; the caller owns the transaction."""
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection {collection!r}")
    if action not in ACTIONS:
        raise ValueError(f"Unknown action {action!r}")

    ev = ChangeEvent(
        collection=collection,
        entity_id=entity_id,
        action=action,
        note=note,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_changes(
    *,
    after: int = 0,
    collection: str | None = None,
    limit: int = 100,
) -> dict:
    limit = max(1, min(limit, 500))

    q = db.session.query(ChangeEvent).filter(ChangeEvent.id > after)
    if collection:
        q = q.filter(ChangeEvent.collection == collection)

    events = q.order_by(ChangeEvent.id.asc()).limit(limit).all()
    cursor = events[-1].id if events else after

    return {
        "items": [ev.to_dict() for ev in events],
        "cursor": cursor,
        "has_more": len(events) == limit,
    }


def latest_cursor() -> int:
    last = db.session.query(ChangeEvent.id).order_by(ChangeEvent.id.desc()).first()
    return last[0] if last else 0
