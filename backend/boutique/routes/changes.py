# Overview: Flask API routes for the change feed; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth
from ..services import ledger_service

"""
Polling semantics:
- after is an exclusive event id; start with 0 (or /latest) and pass back
  the returned cursor.
- has_more means another page is ready right away.
"""

changes_bp = Blueprint("changes", __name__, url_prefix="/api/changes")


@changes_bp.get("")
@require_auth
def list_changes_route():
    after = request.args.get("after", default=0, type=int)
    if after < 0:
        return jsonify({"error": "after must be >= 0"}), 400

    collection = request.args.get("collection") or None
    if collection and collection not in ledger_service.COLLECTIONS:
        return jsonify({"error": f"Unknown collection: {collection}"}), 400

    limit = request.args.get("limit", default=100, type=int)

    return jsonify(ledger_service.list_changes(after=after, collection=collection, limit=limit)), 200


@changes_bp.get("/latest")
@require_auth
def latest_cursor_route():
    return jsonify({"cursor": ledger_service.latest_cursor()}), 200
