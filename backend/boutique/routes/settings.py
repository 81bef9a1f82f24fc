# Overview: Flask API routes for business profile and category settings.

from flask import Blueprint, request

from ..models import BusinessProfile
from ..services import settings_service
from ..services.settings_service import PROFILE_POLICY
from ..validation import validate_payload, percent_to_bps, ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/profile")
@require_auth
def get_profile_route():
    return settings_service.get_profile().to_dict()


@settings_bp.put("/profile")
@settings_bp.patch("/profile")
@require_auth
def update_profile_route():
    """
    Partial update of the business profile.

    default_tax_percent (e.g. 18) is accepted as a convenience for
    default_tax_rate_bps.
    """
    payload = dict(request.get_json(silent=True) or {})

    try:
        if "default_tax_percent" in payload:
            payload["default_tax_rate_bps"] = percent_to_bps(payload.pop("default_tax_percent"), "default_tax_percent")
        patch = validate_payload(model=BusinessProfile, payload=payload, policy=PROFILE_POLICY, partial=True)
        bps = patch.get("default_tax_rate_bps")
        if bps is not None and not 0 <= bps <= 10_000:
            raise ValidationError("default_tax_rate_bps must be between 0 and 10000")
    except ValidationError as e:
        return {"error": str(e)}, 400

    return settings_service.update_profile(patch).to_dict(), 200


@settings_bp.get("/categories")
@require_auth
def list_categories_route():
    return {"items": settings_service.list_categories()}


@settings_bp.post("/categories")
@require_auth
def add_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        names = settings_service.add_category(payload.get("name"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"items": names}, 201


@settings_bp.put("/categories")
@require_auth
def replace_categories_route():
    payload = request.get_json(silent=True) or {}
    try:
        names = settings_service.replace_categories(payload.get("items"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": names}, 200


@settings_bp.delete("/categories/<path:name>")
@require_auth
def delete_category_route(name: str):
    try:
        names = settings_service.delete_category(name)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": names}, 200
