# Overview: WhatsApp share links for invoices.

from __future__ import annotations

import re
from urllib.parse import quote

from .totals_service import bps_to_percent


WHATSAPP_BASE_URL = "https://wa.me/"


def _rupees(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}₹{cents // 100}.{cents % 100:02d}"


def _percent(bps: int) -> str:
    return f"{bps_to_percent(bps).normalize():f}"


def normalize_phone(phone: str | None, country_code: str = "91") -> str | None:
    """
    Keep the digits and prefix the country code when it is missing.

    Returns None when there are no digits at all.
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return None
    if not digits.startswith(country_code):
        digits = f"{country_code}{digits}"
    return digits


def build_share_text(invoice, profile) -> str:
    """Plain-text invoice summary with WhatsApp *bold* markup."""
    parts = [f"*{profile.business_name}*"]
    if profile.address:
        parts.append(profile.address)
    parts += [
        "",
        f"*Invoice: {invoice.invoice_number}*",
        f"Date: {invoice.date:%d/%m/%Y}",
        f"Customer: {invoice.customer_name or 'Walk-in'}",
        "",
        "*Items:*",
    ]
    for line in invoice.lines:
        parts.append(f"{line.name} x{line.quantity} = {_rupees(line.line_total_cents)}")

    parts += [
        "",
        f"Subtotal: {_rupees(invoice.subtotal_cents)}",
        f"GST ({_percent(invoice.tax_rate_bps)}%): {_rupees(invoice.tax_cents)}",
    ]
    if invoice.discount_cents > 0:
        parts.append(f"Discount: {_rupees(invoice.discount_cents)} ({_percent(invoice.discount_rate_bps)}%)")
    parts += [
        f"*Total: {_rupees(invoice.total_cents)}*",
        "",
        f"Payment: {invoice.payment_method}",
        "",
        "Thank you for shopping with us!",
        "",
    ]
    footer = profile.business_name.upper()
    if profile.address:
        footer = f"{footer} | {profile.address}"
    parts.append(f"*{footer}*")
    return "\n".join(parts)


def build_share_url(invoice, profile, country_code: str = "91") -> str:
    """
    https://wa.me/{phone}?text={message}, percent-encoded.

    Without a usable phone number the link opens WhatsApp's contact picker.
    """
    text = quote(build_share_text(invoice, profile), safe="")
    phone = normalize_phone(invoice.phone, country_code)
    if phone:
        return f"{WHATSAPP_BASE_URL}{phone}?text={text}"
    return f"{WHATSAPP_BASE_URL}?text={text}"
