# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import Customer
from ..services import customer_service, invoice_service
from ..services.customer_service import CUSTOMER_POLICY
from ..validation import validate_payload, enforce_rules_customer, ValidationError, NotFoundError
from ..decorators import require_auth

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """List customers by name; ?search= matches name, phone or email."""
    customers = customer_service.list_customers(search=request.args.get("search"))
    return {
        "items": [c.to_dict() for c in customers],
        "count": len(customers),
        "summary": customer_service.customer_summary(),
    }


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return customer.to_dict()


@customers_bp.get("/<int:customer_id>/invoices")
@require_auth
def customer_invoices_route(customer_id: int):
    """Purchase history for one customer, newest first."""
    try:
        customer_service.get_customer(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return invoice_service.list_invoices(customer_id=customer_id)


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        customer = customer_service.create_customer(patch)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return customer.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@customers_bp.patch("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        customer = customer_service.update_customer(customer_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return customer.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200
