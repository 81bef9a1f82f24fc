# backend/boutique/services/inventory_service.py
"""
Inventory Service

Typed query and mutation functions over inventory items. Every mutation
appends a change event in the same transaction.

Stock levels are classified against two thresholds:
    low     quantity <  low_threshold
    medium  low_threshold <= quantity < high_threshold
    high    quantity >= high_threshold
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import InventoryItem
from ..validation import ModelValidationPolicy, NotFoundError
from .ledger_service import append_change_event

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "size", "color", "price_cents", "cost_cents", "quantity", "supplier"},
    required_on_create={"name", "price_cents", "quantity"},
)

STOCK_LEVELS = ("low", "medium", "high")


def is_low_stock(quantity: int, threshold: int) -> bool:
    """Strictly below the threshold; quantity == threshold is not low."""
    return quantity < threshold


def classify_stock_level(quantity: int, low_threshold: int, high_threshold: int) -> str:
    if is_low_stock(quantity, low_threshold):
        return "low"
    if quantity >= high_threshold:
        return "high"
    return "medium"


def stock_thresholds() -> tuple[int, int]:
    cfg = current_app.config
    return cfg["LOW_STOCK_THRESHOLD"], cfg["HIGH_STOCK_THRESHOLD"]


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def list_items(
    *,
    search: str | None = None,
    category: str | None = None,
    stock_level: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    List items ordered by name, with optional filters and pagination.

    stock_level filters on the configured thresholds (low/medium/high).
    """
    query = db.session.query(InventoryItem)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(InventoryItem.name.ilike(like), InventoryItem.category.ilike(like)))
    if category:
        query = query.filter(InventoryItem.category == category)
    if stock_level:
        low, high = stock_thresholds()
        if stock_level == "low":
            query = query.filter(InventoryItem.quantity < low)
        elif stock_level == "medium":
            query = query.filter(InventoryItem.quantity >= low, InventoryItem.quantity < high)
        elif stock_level == "high":
            query = query.filter(InventoryItem.quantity >= high)

    query = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc())

    if page is None:
        items = query.all()
        return {"items": [i.to_dict() for i in items], "count": len(items)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    items = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [i.to_dict() for i in items],
        "count": len(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_item(patch: dict) -> InventoryItem:
    """Create an item from a validated patch (see INVENTORY_ITEM_POLICY)."""
    item = InventoryItem(**patch)
    db.session.add(item)
    db.session.flush()
    append_change_event(collection="inventory", action="created", entity_id=item.id)
    db.session.commit()
    return item


def update_item(item_id: int, patch: dict) -> InventoryItem:
    """Partial-field merge; only fields present in the patch change."""
    item = get_item(item_id)
    for k, v in patch.items():
        if k not in INVENTORY_ITEM_POLICY.writable_fields:
            continue
        setattr(item, k, v)
    append_change_event(collection="inventory", action="updated", entity_id=item.id)
    db.session.commit()
    return item


def delete_item(item_id: int) -> None:
    """
    Hard delete. Invoice lines that reference the item keep their snapshot
    and a dangling item_id.
    """
    item = get_item(item_id)
    db.session.delete(item)
    append_change_event(collection="inventory", action="deleted", entity_id=item_id)
    db.session.commit()


def low_stock_items(threshold: int | None = None) -> list[InventoryItem]:
    if threshold is None:
        threshold, _ = stock_thresholds()
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.quantity < threshold)
        .order_by(InventoryItem.quantity.asc(), InventoryItem.name.asc())
        .all()
    )
