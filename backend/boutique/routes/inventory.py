# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/boutique/routes/inventory.py
"""
Inventory item routes.

Prices and costs are integer paise (price_cents / cost_cents).
All routes require authentication.
"""
from flask import Blueprint, request, current_app

from ..models import InventoryItem
from ..services import inventory_service
from ..services.inventory_service import INVENTORY_ITEM_POLICY, STOCK_LEVELS
from ..validation import (
    validate_payload,
    enforce_rules_inventory_item,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_items_route():
    """
    List inventory items.

    Query params:
    - search: str (optional) - matches name or category
    - category: str (optional)
    - stock_level: low | medium | high (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    stock_level = request.args.get("stock_level") or None
    if stock_level and stock_level not in STOCK_LEVELS:
        return {"error": f"stock_level must be one of {', '.join(STOCK_LEVELS)}"}, 400

    category = request.args.get("category") or None
    if category == "All":
        category = None

    return inventory_service.list_items(
        search=request.args.get("search"),
        category=category,
        stock_level=stock_level,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    """Items strictly below the low stock threshold (or ?threshold=N)."""
    threshold = request.args.get("threshold", type=int)
    items = inventory_service.low_stock_items(threshold)
    return {"items": [i.to_dict() for i in items], "count": len(items)}


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        return inventory_service.get_item(item_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.post("")
@require_auth
def create_item_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=False)
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.create_item(patch)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return {"error": "Internal server error"}, 500

    return item.to_dict(), 201


@inventory_bp.put("/<int:item_id>")
@inventory_bp.patch("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    """Partial update; only fields present in the body change."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=True)
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.update_item(item_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return item.to_dict(), 200


@inventory_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(item_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"ok": True}, 200
