# Overview: CSV and PDF rendering for reports and invoices.

"""
Export Service

CSV:
- Header row is the keys of the first row, in insertion order
- RFC 4180 quoting: a value is quoted when it contains a comma, a quote,
  CR or LF; embedded quotes are doubled
- UTF-8 body with a leading BOM so spreadsheet apps pick the encoding
- Filename {name}_{unixMillis}.csv

PDF (reportlab):
- "{business} - {title}" heading, generation timestamp, summary lines
- Bordered table with a repeated header row, as many pages as needed
- Money rendered as "Rs. 1,234.50"
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..validation import ValidationError
from boutique.time_utils import unix_millis, utcnow
from .totals_service import bps_to_percent


CSV_MIMETYPE = "text/csv; charset=utf-8"
PDF_MIMETYPE = "application/pdf"

UTF8_BOM = "\ufeff"

HEADER_COLOR = colors.HexColor("#800020")

# Column kinds understood by format_cell
TEXT = "text"
MONEY = "money"
INT = "int"
PERCENT = "percent"


@dataclass
class ReportTable:
    """
    A report flattened for export.

    summary holds (label, value, kind) triples; rows hold raw values
    (money in cents) matching columns, which are (header, kind) pairs.
    """
    title: str
    columns: list[tuple[str, str]]
    rows: list[list] = field(default_factory=list)
    summary: list[tuple[str, object, str]] = field(default_factory=list)

    @property
    def headers(self) -> list[str]:
        return [header for header, _kind in self.columns]


def format_amount(cents: int) -> str:
    """1234.5 rupees as '1234.50'. Used in CSV cells."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def format_currency_for_pdf(cents: int) -> str:
    """'Rs. 1,234.50'. The rupee glyph is missing from the built-in PDF fonts."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}Rs. {cents // 100:,}.{cents % 100:02d}"


def format_percent(value) -> str:
    if value is None:
        return ""
    return f"{Decimal(str(value)):.2f}%"


def format_cell(value, kind: str, *, for_pdf: bool) -> str:
    if value is None:
        return ""
    if kind == MONEY:
        return format_currency_for_pdf(value) if for_pdf else format_amount(value)
    if kind == PERCENT:
        return format_percent(value)
    return str(value)


def export_filename(name: str, extension: str, now: datetime | None = None) -> str:
    return f"{name}_{unix_millis(now)}.{extension}"


def rows_to_csv(rows: list[dict], name: str, now: datetime | None = None) -> tuple[str, bytes]:
    """
    Serialize a list of flat dicts to CSV.

    Returns (filename, body). Raises ValidationError on an empty list.
    """
    if not rows:
        raise ValidationError("No data to export")

    headers = list(rows[0].keys())
    buf = io.StringIO()
    buf.write(UTF8_BOM)
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])

    return export_filename(name, "csv", now), buf.getvalue().encode("utf-8")


def table_to_csv_rows(table: ReportTable) -> list[dict]:
    return [
        {header: format_cell(value, kind, for_pdf=False) for (header, kind), value in zip(table.columns, row)}
        for row in table.rows
    ]


def summary_lines(table: ReportTable) -> list[str]:
    return [f"{label}: {format_cell(value, kind, for_pdf=True)}" for label, value, kind in table.summary]


def _grid_style(header_row: bool = True) -> TableStyle:
    commands = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
    if header_row:
        commands += [
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ]
    return TableStyle(commands)


def render_report_pdf(
    business_name: str,
    title: str,
    summary: list[str],
    headers: list[str],
    rows: list[list[str]],
    now: datetime | None = None,
) -> bytes:
    """Render a tabular report. Rows must already be formatted strings."""
    now = now or utcnow()
    styles = getSampleStyleSheet()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        title=f"{business_name} - {title}",
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
    )

    story = [
        Paragraph(escape(f"{business_name} - {title}"), styles["Title"]),
        Paragraph(f"Generated on: {now:%Y-%m-%d %H:%M} UTC", styles["Normal"]),
        Spacer(1, 4 * mm),
    ]
    for line in summary:
        story.append(Paragraph(escape(line), styles["Normal"]))
    story.append(Spacer(1, 4 * mm))

    if rows:
        table = Table([headers] + rows, repeatRows=1)
        table.setStyle(_grid_style())
        story.append(table)
    else:
        story.append(Paragraph("No records for the selected filters.", styles["Italic"]))

    doc.build(story)
    return buf.getvalue()


def render_table_pdf(business_name: str, table: ReportTable, now: datetime | None = None) -> bytes:
    rows = [
        [format_cell(value, kind, for_pdf=True) for (_header, kind), value in zip(table.columns, row)]
        for row in table.rows
    ]
    return render_report_pdf(business_name, table.title, summary_lines(table), table.headers, rows, now)


def render_invoice_pdf(invoice, profile) -> bytes:
    """Printable invoice: business header, bill-to, items, totals, footer."""
    styles = getSampleStyleSheet()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        title=f"Invoice {invoice.invoice_number}",
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
    )

    contact = " | ".join(
        part for part in (
            f"Phone: {profile.phone}" if profile.phone else None,
            f"GSTIN: {profile.gstin}" if profile.gstin else None,
        ) if part
    )

    story = [Paragraph(escape(profile.business_name), styles["Title"])]
    if profile.address:
        story.append(Paragraph(escape(profile.address), styles["Normal"]))
    if contact:
        story.append(Paragraph(escape(contact), styles["Normal"]))
    story += [Spacer(1, 6 * mm), Paragraph("INVOICE", styles["Heading2"])]

    bill_to = [Paragraph("<b>BILL TO</b>", styles["Normal"]),
               Paragraph(escape(invoice.customer_name or "Walk-in Customer"), styles["Normal"])]
    if invoice.phone:
        bill_to.append(Paragraph(escape(invoice.phone), styles["Normal"]))
    details = [
        Paragraph(f"<b>Invoice No:</b> {escape(invoice.invoice_number)}", styles["Normal"]),
        Paragraph(f"<b>Date:</b> {invoice.date:%d/%m/%Y}", styles["Normal"]),
        Paragraph(f"<b>Payment:</b> {invoice.payment_method}", styles["Normal"]),
    ]
    header_block = Table([[bill_to, details]], colWidths=[87 * mm, 87 * mm])
    header_block.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    story += [header_block, Spacer(1, 6 * mm)]

    item_rows = [["Item", "Category", "Qty", "Price", "Amount"]]
    for line in invoice.lines:
        item_rows.append([
            line.name,
            line.category or "",
            str(line.quantity),
            format_currency_for_pdf(line.unit_price_cents),
            format_currency_for_pdf(line.line_total_cents),
        ])
    items_table = Table(item_rows, repeatRows=1, colWidths=[62 * mm, 35 * mm, 17 * mm, 30 * mm, 30 * mm])
    items_table.setStyle(_grid_style())
    story += [items_table, Spacer(1, 4 * mm)]

    totals_rows = [["Subtotal:", format_currency_for_pdf(invoice.subtotal_cents)]]
    if invoice.discount_cents > 0:
        totals_rows.append([
            f"Discount ({format_percent(bps_to_percent(invoice.discount_rate_bps))}):",
            f"-{format_currency_for_pdf(invoice.discount_cents)}",
        ])
    totals_rows.append([
        f"GST ({format_percent(bps_to_percent(invoice.tax_rate_bps))}):",
        format_currency_for_pdf(invoice.tax_cents),
    ])
    totals_rows.append(["Total Amount:", format_currency_for_pdf(invoice.total_cents)])
    totals_table = Table(totals_rows, hAlign="RIGHT", colWidths=[45 * mm, 35 * mm])
    totals_table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("TEXTCOLOR", (0, -1), (-1, -1), HEADER_COLOR),
        ("LINEABOVE", (0, -1), (-1, -1), 0.75, HEADER_COLOR),
    ]))
    story += [totals_table, Spacer(1, 10 * mm)]

    story.append(Paragraph(escape(f"Thank you for shopping with {profile.business_name}!"), styles["Normal"]))
    footer = profile.business_name.upper()
    if profile.address:
        footer = f"{footer} | {profile.address}"
    story.append(Paragraph(f"<b>{escape(footer)}</b>", styles["Normal"]))

    doc.build(story)
    return buf.getvalue()
