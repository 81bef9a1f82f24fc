"""
Invoice Service - invoice creation transaction and administrative edits

create_invoice is the only multi-entity write in the system. It:
1. resolves each draft line against the current inventory (missing -> abort)
2. computes totals (totals_service, tax on the discounted amount)
3. inserts the invoice with denormalized line snapshots and the next number
   from the invoice sequence
4. decrements each item's quantity in SQL
5. bumps the linked customer's total_spent_cents / visit_count
6. appends change events
all inside one database transaction. Either everything is committed or
nothing is; there are no automatic retries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Invoice, InvoiceLine, InventoryItem, Customer
from ..validation import ValidationError, NotFoundError, percent_to_bps
from boutique.time_utils import utcnow, end_of_day
from .concurrency import lock_for_update, increment_column
from .document_service import allocate_invoice_number
from .ledger_service import append_change_event
from .totals_service import LineAmount, bps_to_percent, calculate_invoice_totals
from . import settings_service


PAYMENT_METHODS = ("Cash", "Card", "UPI")

# Header fields an administrator may correct after the fact.
# Lines and totals are immutable.
INVOICE_EDITABLE_FIELDS = {"customer_name", "phone", "payment_method", "date"}


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ItemNotFoundError(InvoiceError, NotFoundError):
    """A draft line references an inventory item that no longer exists."""


class InsufficientStockError(InvoiceError):
    """The sale would drive stock negative and overselling is disabled."""


class InvoiceCommitError(InvoiceError):
    """
    The transaction failed at commit time and was rolled back.

    details always carries invoice_written / inventory_updated /
    customer_updated flags. With a single atomic commit they are all False:
    the caller can resubmit the whole draft, which recomputes the number.
    """
    def __init__(self, message: str, *, number_conflict: bool = False, details: dict | None = None):
        flags = {
            "invoice_written": False,
            "inventory_updated": False,
            "customer_updated": False,
        }
        flags.update(details or {})
        super().__init__(message, flags)
        self.number_conflict = number_conflict


@dataclass
class DraftLine:
    item_id: int
    quantity: int


@dataclass
class InvoiceDraft:
    lines: list[DraftLine]
    customer_name: str | None = None
    phone: str | None = None
    customer_id: int | None = None
    payment_method: str = "Cash"
    discount_rate_bps: int = 0
    tax_rate_bps: int | None = None
    date: datetime | None = None


def _as_positive_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{name} must be a positive integer")
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f"{name} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return number


def parse_draft(payload: dict) -> InvoiceDraft:
    """
    Build an InvoiceDraft from a JSON payload.

    Expected shape:
        {
          "lines": [{"item_id": 3, "quantity": 2}, ...],
          "customer_name": "...", "phone": "...", "customer_id": 7,
          "payment_method": "Cash" | "Card" | "UPI",
          "discount_percent": 10, "tax_percent": 18
        }
    Lines without an item_id are dropped (blank rows from the form); at least
    one real line must remain.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines: list[DraftLine] = []
    for i, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{i}] must be an object")
        if raw.get("item_id") in (None, ""):
            continue
        lines.append(
            DraftLine(
                item_id=_as_positive_int(raw.get("item_id"), f"lines[{i}].item_id"),
                quantity=_as_positive_int(raw.get("quantity", 1), f"lines[{i}].quantity"),
            )
        )
    if not lines:
        raise ValidationError("Please add at least one item")

    payment_method = payload.get("payment_method") or "Cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    customer_id = payload.get("customer_id")
    if customer_id in ("", None):
        customer_id = None
    else:
        customer_id = _as_positive_int(customer_id, "customer_id")

    discount_raw = payload.get("discount_percent", 0)
    discount_bps = percent_to_bps(discount_raw if discount_raw not in (None, "") else 0, "discount_percent")

    tax_raw = payload.get("tax_percent")
    tax_bps = None if tax_raw in (None, "") else percent_to_bps(tax_raw, "tax_percent")

    customer_name = (payload.get("customer_name") or "").strip() or None
    phone = (payload.get("phone") or "").strip() or None

    return InvoiceDraft(
        lines=lines,
        customer_name=customer_name,
        phone=phone,
        customer_id=customer_id,
        payment_method=payment_method,
        discount_rate_bps=discount_bps,
        tax_rate_bps=tax_bps,
    )


def _resolve_items(draft: InvoiceDraft) -> dict[int, InventoryItem]:
    item_ids = sorted({line.item_id for line in draft.lines})
    rows = lock_for_update(
        db.session.query(InventoryItem).filter(InventoryItem.id.in_(item_ids))
    ).all()
    items = {item.id: item for item in rows}

    missing = [item_id for item_id in item_ids if item_id not in items]
    if missing:
        raise ItemNotFoundError(
            "Inventory item no longer exists",
            details={"missing_item_ids": missing},
        )
    return items


def _check_stock(draft: InvoiceDraft, items: dict[int, InventoryItem]) -> None:
    requested: dict[int, int] = {}
    for line in draft.lines:
        requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity

    insufficient = []
    for item_id, qty in requested.items():
        on_hand = items[item_id].quantity
        if on_hand < qty:
            insufficient.append({
                "item_id": item_id,
                "name": items[item_id].name,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock for this invoice",
            details={"items": insufficient},
        )


def create_invoice(draft: InvoiceDraft, *, now: datetime | None = None) -> Invoice:
    """
    Create an invoice and apply its stock and customer effects atomically.

    Raises:
        ItemNotFoundError: a line references a missing item (nothing written)
        NotFoundError: customer_id does not exist (nothing written)
        InsufficientStockError: overselling disabled and stock too low
        InvoiceCommitError: the commit failed and was rolled back
    """
    now = now or utcnow()

    try:
        items = _resolve_items(draft)

        customer = None
        if draft.customer_id is not None:
            customer = lock_for_update(
                db.session.query(Customer).filter(Customer.id == draft.customer_id)
            ).first()
            if customer is None:
                raise NotFoundError(f"Customer {draft.customer_id} not found")

        if not current_app.config.get("ALLOW_NEGATIVE_STOCK", True):
            _check_stock(draft, items)

        tax_bps = draft.tax_rate_bps
        if tax_bps is None:
            tax_bps = settings_service.get_profile().default_tax_rate_bps

        totals = calculate_invoice_totals(
            [LineAmount(items[line.item_id].price_cents, line.quantity) for line in draft.lines],
            tax_rate_percent=bps_to_percent(tax_bps),
            discount_rate_percent=bps_to_percent(draft.discount_rate_bps),
        )

        invoice = Invoice(
            invoice_number=allocate_invoice_number(now),
            date=draft.date or now,
            customer_name=draft.customer_name or (customer.name if customer else None),
            phone=draft.phone or (customer.phone if customer else None),
            customer_id=draft.customer_id,
            payment_method=draft.payment_method,
            subtotal_cents=totals.subtotal_cents,
            discount_rate_bps=draft.discount_rate_bps,
            discount_cents=totals.discount_cents,
            tax_rate_bps=tax_bps,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
        )
        for position, line in enumerate(draft.lines):
            item = items[line.item_id]
            invoice.lines.append(
                InvoiceLine(
                    position=position,
                    item_id=item.id,
                    name=item.name,
                    category=item.category or "General",
                    quantity=line.quantity,
                    unit_price_cents=item.price_cents,
                    unit_cost_cents=item.cost_cents or 0,
                    line_total_cents=item.price_cents * line.quantity,
                )
            )
        db.session.add(invoice)
        db.session.flush()

        append_change_event(collection="invoices", action="created", entity_id=invoice.id)

        for line in draft.lines:
            increment_column(InventoryItem, line.item_id, quantity=-line.quantity)
        for item_id in sorted(items):
            append_change_event(collection="inventory", action="updated", entity_id=item_id, note=invoice.invoice_number)

        if customer is not None:
            increment_column(Customer, customer.id, total_spent_cents=totals.total_cents, visit_count=1)
            customer.last_visit_at = invoice.date
            append_change_event(collection="customers", action="updated", entity_id=customer.id, note=invoice.invoice_number)

        db.session.commit()
        return invoice

    except IntegrityError as exc:
        db.session.rollback()
        number_conflict = "invoice_number" in str(exc.orig) or "uq_invoices_number" in str(exc.orig)
        current_app.logger.error(
            "Invoice commit failed; nothing written",
            extra={
                "invoice_written": False,
                "inventory_updated": False,
                "customer_updated": False,
                "number_conflict": number_conflict,
            },
        )
        raise InvoiceCommitError(
            "Invoice number already taken; resubmit to get a new number"
            if number_conflict else "Invoice could not be saved",
            number_conflict=number_conflict,
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(
            "Invoice commit failed; nothing written",
            extra={
                "invoice_written": False,
                "inventory_updated": False,
                "customer_updated": False,
                "number_conflict": False,
            },
        )
        raise InvoiceCommitError("Invoice could not be saved") from exc
    except (InvoiceError, NotFoundError):
        db.session.rollback()
        raise


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def get_invoice_by_number(invoice_number: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(invoice_number=invoice_number).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_number} not found")
    return invoice


def list_invoices(
    *,
    search: str | None = None,
    on_date: datetime | None = None,
    payment_method: str | None = None,
    customer_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Newest first. search matches the invoice number or customer name
    (case-insensitive); on_date keeps invoices from that calendar day.
    """
    query = db.session.query(Invoice)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Invoice.invoice_number.ilike(like), Invoice.customer_name.ilike(like)))
    if on_date is not None:
        day_start = datetime(on_date.year, on_date.month, on_date.day)
        query = query.filter(Invoice.date >= day_start, Invoice.date <= end_of_day(day_start.date()))
    if payment_method and payment_method != "All":
        query = query.filter(Invoice.payment_method == payment_method)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)

    query = query.order_by(Invoice.date.desc(), Invoice.id.desc())

    if page is None:
        invoices = query.all()
        return {"items": [inv.to_dict() for inv in invoices], "count": len(invoices)}

    per_page = min(per_page or 10, 100)
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    invoices = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [inv.to_dict() for inv in invoices],
        "count": len(invoices),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def update_invoice(invoice_id: int, patch: dict) -> Invoice:
    """
    Administrative correction of header fields. Stock and customer
    aggregates are not touched.
    """
    invoice = get_invoice(invoice_id)
    unknown = set(patch) - INVOICE_EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if "payment_method" in patch and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    for k, v in patch.items():
        setattr(invoice, k, v)
    append_change_event(collection="invoices", action="updated", entity_id=invoice.id)
    db.session.commit()
    return invoice


def delete_invoice(invoice_id: int) -> None:
    """Hard delete. Sold stock is not returned and customer totals stay as they are."""
    invoice = get_invoice(invoice_id)
    db.session.delete(invoice)
    append_change_event(collection="invoices", action="deleted", entity_id=invoice_id)
    db.session.commit()


def invoice_summary(now: datetime | None = None) -> dict:
    """Header stats for the invoices page."""
    now = now or utcnow()
    invoices = db.session.query(Invoice.date, Invoice.total_cents).all()
    return {
        "total_invoices": len(invoices),
        "total_amount_cents": sum(total for _, total in invoices),
        "today_invoices": sum(1 for d, _ in invoices if d.date() == now.date()),
    }
