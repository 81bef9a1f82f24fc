# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/boutique/routes/invoices.py
"""
Invoice routes.

POST /api/invoices runs the full creation transaction (stock decrement and
customer aggregates included). Error mapping:
- 400 invalid draft
- 404 item or customer no longer exists
- 409 insufficient stock (when overselling is disabled) or number taken
- 503 commit failed for another reason; nothing was written
"""
from flask import Blueprint, Response, request, current_app

from ..models import Invoice
from ..services import invoice_service, export_service, messaging_service, settings_service
from ..services.invoice_service import (
    InvoiceCommitError,
    InsufficientStockError,
    PAYMENT_METHODS,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth
from boutique.time_utils import parse_iso_datetime

INVOICE_HEADER_POLICY = ModelValidationPolicy(
    writable_fields=invoice_service.INVOICE_EDITABLE_FIELDS,
)

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    List invoices, newest first.

    Query params:
    - search: str (optional) - invoice number or customer name
    - date: YYYY-MM-DD (optional)
    - payment_method: Cash | Card | UPI | All (optional)
    - page / per_page: int (optional)
    """
    try:
        on_date = parse_iso_datetime(request.args.get("date"))
    except ValueError:
        return {"error": "date must be YYYY-MM-DD"}, 400

    result = invoice_service.list_invoices(
        search=request.args.get("search"),
        on_date=on_date,
        payment_method=request.args.get("payment_method"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    result["summary"] = invoice_service.invoice_summary()
    return result


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """
    Create an invoice.

    Body: {"lines": [{"item_id": 1, "quantity": 2}], "customer_name": "...",
           "phone": "...", "customer_id": 3, "payment_method": "Cash",
           "discount_percent": 5, "tax_percent": 18}
    """
    payload = request.get_json(silent=True)

    try:
        draft = invoice_service.parse_draft(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        invoice = invoice_service.create_invoice(draft)
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 409
    except InvoiceCommitError as e:
        status = 409 if e.number_conflict else 503
        return {"error": str(e), "details": e.details}, status
    except NotFoundError as e:
        return {"error": str(e), "details": getattr(e, "details", {})}, 404
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return {"error": "Internal server error"}, 500

    return invoice.to_dict(), 201


@invoices_bp.get("/payment-methods")
@require_auth
def payment_methods_route():
    return {"items": list(PAYMENT_METHODS)}


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        return invoice_service.get_invoice(invoice_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@invoices_bp.put("/<int:invoice_id>")
@invoices_bp.patch("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    """Correct header fields (customer_name, phone, payment_method, date)."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_HEADER_POLICY, partial=True)
        invoice = invoice_service.update_invoice(invoice_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return invoice.to_dict(), 200


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    try:
        body = export_service.render_invoice_pdf(invoice, settings_service.get_profile())
    except Exception:
        current_app.logger.exception("Failed to render invoice PDF")
        return {"error": "Internal server error"}, 500

    return Response(
        body,
        mimetype=export_service.PDF_MIMETYPE,
        headers={"Content-Disposition": f'attachment; filename="invoice-{invoice.invoice_number}.pdf"'},
    )


@invoices_bp.get("/<int:invoice_id>/share")
@require_auth
def invoice_share_route(invoice_id: int):
    """WhatsApp deep link with the invoice summary."""
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    profile = settings_service.get_profile()
    return {
        "url": messaging_service.build_share_url(
            invoice, profile, current_app.config["DEFAULT_COUNTRY_CODE"]
        ),
        "text": messaging_service.build_share_text(invoice, profile),
    }
