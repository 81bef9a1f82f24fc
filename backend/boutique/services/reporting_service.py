# Overview: Service-layer operations for reporting; read-only aggregations recomputed per request.

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import Invoice, InvoiceLine, InventoryItem
from ..validation import ValidationError
from boutique.time_utils import parse_iso_datetime, end_of_day, utcnow, to_utc_z
from .export_service import ReportTable, TEXT, MONEY, INT, PERCENT
from .inventory_service import classify_stock_level, is_low_stock, stock_thresholds, STOCK_LEVELS


RECENT_INVOICE_COUNT = 5
TREND_DAYS = 7
DEFAULT_TOP_PRODUCTS = 5


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Inclusive date range. A bare YYYY-MM-DD end covers that whole day.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")
    if end_dt is not None and len(end.strip()) == 10:
        end_dt = end_of_day(end_dt.date())
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be on or before end")
    return start_dt, end_dt


def _period_label(start: str | None, end: str | None) -> str:
    return f"{start or 'beginning'} to {end or 'today'}"


def _average_cents(total: int, count: int) -> int:
    if not count:
        return 0
    return int((Decimal(total) / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _margin_percent(profit_cents: int, revenue_cents: int) -> float | None:
    if not revenue_cents:
        return None
    pct = Decimal(profit_cents) * Decimal(100) / Decimal(revenue_cents)
    return float(pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _change_percent(current: int, previous: int) -> float | None:
    if not previous:
        return None
    pct = Decimal(current - previous) * Decimal(100) / Decimal(previous)
    return float(pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _invoices_in_range(start_dt: datetime | None, end_dt: datetime | None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if start_dt:
        query = query.filter(Invoice.date >= start_dt)
    if end_dt:
        query = query.filter(Invoice.date <= end_dt)
    return query.order_by(Invoice.date.asc(), Invoice.id.asc()).all()


def _daily_totals(invoices: list[Invoice], days: list[date]) -> list[dict]:
    buckets = OrderedDict((d, {"total_cents": 0, "invoice_count": 0}) for d in days)
    for inv in invoices:
        bucket = buckets.get(inv.date.date())
        if bucket is not None:
            bucket["total_cents"] += inv.total_cents
            bucket["invoice_count"] += 1
    return [{"date": d.isoformat(), **values} for d, values in buckets.items()]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def dashboard(now: datetime | None = None) -> dict:
    """
    Headline numbers for the landing page.

    Profit uses the unit cost snapshotted on each invoice line, so later
    cost edits do not rewrite history.
    """
    now = now or utcnow()
    today = now.date()
    low, high = stock_thresholds()

    invoices = db.session.query(Invoice).order_by(Invoice.date.desc(), Invoice.id.desc()).all()
    items = db.session.query(InventoryItem).order_by(InventoryItem.name.asc()).all()

    total_revenue = sum(inv.total_cents for inv in invoices)
    today_invoices = [inv for inv in invoices if inv.date.date() == today]

    line_revenue, line_cost = db.session.query(
        db.func.coalesce(db.func.sum(InvoiceLine.line_total_cents), 0),
        db.func.coalesce(db.func.sum(InvoiceLine.unit_cost_cents * InvoiceLine.quantity), 0),
    ).one()

    # Trend windows: the last 7 days including today, and the 7 before that
    window_start = datetime.combine(today - timedelta(days=TREND_DAYS - 1), datetime.min.time())
    previous_start = window_start - timedelta(days=TREND_DAYS)
    this_week = sum(inv.total_cents for inv in invoices if window_start <= inv.date <= end_of_day(today))
    previous_week = sum(inv.total_cents for inv in invoices if previous_start <= inv.date < window_start)

    days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]

    value_by_category: dict[str, int] = {}
    stock_levels = {level: 0 for level in STOCK_LEVELS}
    for item in items:
        category = item.category or "Uncategorized"
        value_by_category[category] = value_by_category.get(category, 0) + item.price_cents * item.quantity
        stock_levels[classify_stock_level(item.quantity, low, high)] += 1

    low_items = [item for item in items if is_low_stock(item.quantity, low)]

    return {
        "generated_at": to_utc_z(now),
        "today_sales_cents": sum(inv.total_cents for inv in today_invoices),
        "today_invoice_count": len(today_invoices),
        "total_revenue_cents": total_revenue,
        "total_invoices": len(invoices),
        "total_cost_cents": int(line_cost),
        "total_profit_cents": int(line_revenue) - int(line_cost),
        "total_items": len(items),
        "total_units": sum(item.quantity for item in items),
        "low_stock_count": len(low_items),
        "low_stock_items": [item.to_dict() for item in low_items],
        "recent_invoices": [inv.to_dict(include_lines=False) for inv in invoices[:RECENT_INVOICE_COUNT]],
        "last_7_days": _daily_totals(invoices, days),
        "week_over_week": {
            "this_week_cents": this_week,
            "previous_week_cents": previous_week,
            "change_percent": _change_percent(this_week, previous_week),
        },
        "inventory_value_by_category": [
            {"category": name, "value_cents": value}
            for name, value in sorted(value_by_category.items())
        ],
        "stock_levels": stock_levels,
        "thresholds": {"low": low, "high": high},
    }


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------

def sales_report(*, start: str | None = None, end: str | None = None, top_n: int = DEFAULT_TOP_PRODUCTS) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    invoices = _invoices_in_range(start_dt, end_dt)

    revenue = sum(inv.total_cents for inv in invoices)

    by_date: OrderedDict[str, dict] = OrderedDict()
    by_category: dict[str, int] = {}
    payments: dict[str, dict] = {}
    products: dict[str, dict] = {}

    for inv in invoices:
        day = inv.date.date().isoformat()
        bucket = by_date.setdefault(day, {"date": day, "total_cents": 0, "invoice_count": 0})
        bucket["total_cents"] += inv.total_cents
        bucket["invoice_count"] += 1

        pay = payments.setdefault(inv.payment_method, {"payment_method": inv.payment_method, "count": 0, "total_cents": 0})
        pay["count"] += 1
        pay["total_cents"] += inv.total_cents

        for line in inv.lines:
            category = line.category or "Uncategorized"
            by_category[category] = by_category.get(category, 0) + line.line_total_cents
            product = products.setdefault(line.name, {"name": line.name, "quantity": 0, "revenue_cents": 0})
            product["quantity"] += line.quantity
            product["revenue_cents"] += line.line_total_cents

    top_products = sorted(products.values(), key=lambda p: (-p["quantity"], -p["revenue_cents"], p["name"]))

    return {
        "start": start,
        "end": end,
        "total_revenue_cents": revenue,
        "invoice_count": len(invoices),
        "average_invoice_cents": _average_cents(revenue, len(invoices)),
        "sales_by_date": list(by_date.values()),
        "sales_by_category": [
            {"category": name, "total_cents": total}
            for name, total in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "payment_distribution": sorted(payments.values(), key=lambda p: p["payment_method"]),
        "top_products": top_products[:max(top_n, 0)],
        "invoices": [inv.to_dict(include_lines=False) for inv in invoices],
    }


def sales_table(report: dict) -> ReportTable:
    return ReportTable(
        title="Sales Report",
        columns=[("Invoice ID", TEXT), ("Date", TEXT), ("Customer", TEXT), ("Payment", TEXT), ("Total", MONEY)],
        rows=[
            [inv["invoice_number"], inv["date"][:10], inv["customer_name"] or "Walk-in", inv["payment_method"], inv["total_cents"]]
            for inv in report["invoices"]
        ],
        summary=[
            ("Period", _period_label(report["start"], report["end"]), TEXT),
            ("Total Revenue", report["total_revenue_cents"], MONEY),
            ("Total Invoices", report["invoice_count"], INT),
            ("Average Invoice Value", report["average_invoice_cents"], MONEY),
        ],
    )


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def inventory_report(
    *,
    category: str | None = None,
    stock_level: str | None = None,
    added_from: str | None = None,
    added_to: str | None = None,
) -> dict:
    if stock_level and stock_level not in STOCK_LEVELS:
        raise ValidationError(f"stock_level must be one of {', '.join(STOCK_LEVELS)}")
    start_dt, end_dt = _parse_range(added_from, added_to)
    low, high = stock_thresholds()

    query = db.session.query(InventoryItem)
    if category and category != "All":
        query = query.filter(InventoryItem.category == category)
    if start_dt:
        query = query.filter(InventoryItem.date_added >= start_dt)
    if end_dt:
        query = query.filter(InventoryItem.date_added <= end_dt)
    items = query.order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()

    if stock_level:
        items = [i for i in items if classify_stock_level(i.quantity, low, high) == stock_level]

    breakdown: dict[str, dict] = {}
    for item in items:
        name = item.category or "Uncategorized"
        entry = breakdown.setdefault(name, {"category": name, "item_count": 0, "units": 0, "value_cents": 0})
        entry["item_count"] += 1
        entry["units"] += item.quantity
        entry["value_cents"] += item.price_cents * item.quantity

    return {
        "filters": {"category": category, "stock_level": stock_level, "added_from": added_from, "added_to": added_to},
        "total_items": len(items),
        "total_units": sum(i.quantity for i in items),
        "total_value_cents": sum(i.price_cents * i.quantity for i in items),
        "low_stock_count": sum(1 for i in items if is_low_stock(i.quantity, low)),
        "potential_profit_cents": sum((i.price_cents - (i.cost_cents or 0)) * i.quantity for i in items),
        "category_breakdown": sorted(breakdown.values(), key=lambda e: e["category"]),
        "items": [
            {**i.to_dict(), "stock_level": classify_stock_level(i.quantity, low, high)}
            for i in items
        ],
    }


def inventory_table(report: dict) -> ReportTable:
    return ReportTable(
        title="Inventory Report",
        columns=[
            ("Name", TEXT), ("Category", TEXT), ("Size", TEXT), ("Color", TEXT),
            ("Price", MONEY), ("Quantity", INT), ("Supplier", TEXT),
        ],
        rows=[
            [i["name"], i["category"], i["size"], i["color"], i["price_cents"], i["quantity"], i["supplier"]]
            for i in report["items"]
        ],
        summary=[
            ("Total Items", report["total_items"], INT),
            ("Total Stock Value", report["total_value_cents"], MONEY),
            ("Low Stock Items", report["low_stock_count"], INT),
            ("Potential Profit", report["potential_profit_cents"], MONEY),
        ],
    )


# ---------------------------------------------------------------------------
# Profit & Loss
# ---------------------------------------------------------------------------

def profit_loss_report(
    *,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
    item: str | None = None,
) -> dict:
    """
    Per-line profitability. Revenue is the line total before invoice-level
    discount and tax; cost is the snapshotted unit cost times quantity.
    """
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(InvoiceLine, Invoice).join(Invoice, InvoiceLine.invoice_id == Invoice.id)
    if start_dt:
        query = query.filter(Invoice.date >= start_dt)
    if end_dt:
        query = query.filter(Invoice.date <= end_dt)
    if category and category != "All":
        query = query.filter(InvoiceLine.category == category)
    if item:
        query = query.filter(InvoiceLine.name.ilike(f"%{item.strip()}%"))
    pairs = query.order_by(Invoice.date.asc(), Invoice.id.asc(), InvoiceLine.position.asc()).all()

    lines = []
    by_category: dict[str, dict] = {}
    by_date: OrderedDict[str, dict] = OrderedDict()

    for line, inv in pairs:
        revenue = line.line_total_cents
        cost = (line.unit_cost_cents or 0) * line.quantity
        profit = revenue - cost
        day = inv.date.date().isoformat()
        name = line.category or "Uncategorized"

        lines.append({
            "invoice_number": inv.invoice_number,
            "date": day,
            "item": line.name,
            "category": name,
            "quantity": line.quantity,
            "cost_cents": cost,
            "revenue_cents": revenue,
            "profit_cents": profit,
            "margin_percent": _margin_percent(profit, revenue),
        })

        cat = by_category.setdefault(name, {"category": name, "revenue_cents": 0, "cost_cents": 0, "profit_cents": 0})
        cat["revenue_cents"] += revenue
        cat["cost_cents"] += cost
        cat["profit_cents"] += profit

        daily = by_date.setdefault(day, {"date": day, "revenue_cents": 0, "cost_cents": 0, "profit_cents": 0})
        daily["revenue_cents"] += revenue
        daily["cost_cents"] += cost
        daily["profit_cents"] += profit

    total_revenue = sum(l["revenue_cents"] for l in lines)
    total_cost = sum(l["cost_cents"] for l in lines)
    total_profit = total_revenue - total_cost

    return {
        "filters": {"start": start, "end": end, "category": category, "item": item},
        "total_revenue_cents": total_revenue,
        "total_cost_cents": total_cost,
        "net_profit_cents": total_profit,
        "net_margin_percent": _margin_percent(total_profit, total_revenue),
        "profitable_items": sum(1 for l in lines if l["profit_cents"] > 0),
        "loss_items": sum(1 for l in lines if l["profit_cents"] < 0),
        "profit_by_category": sorted(by_category.values(), key=lambda c: (-c["profit_cents"], c["category"])),
        "profit_by_date": list(by_date.values()),
        "lines": lines,
    }


def profit_loss_table(report: dict, *, for_pdf: bool = False) -> ReportTable:
    """The PDF layout drops Category and Margin % to fit the page width."""
    if for_pdf:
        columns = [("Invoice", TEXT), ("Date", TEXT), ("Item", TEXT), ("Qty", INT),
                   ("Cost", MONEY), ("Revenue", MONEY), ("Profit", MONEY)]
        rows = [
            [l["invoice_number"], l["date"], l["item"], l["quantity"], l["cost_cents"], l["revenue_cents"], l["profit_cents"]]
            for l in report["lines"]
        ]
    else:
        columns = [("Invoice", TEXT), ("Date", TEXT), ("Item", TEXT), ("Category", TEXT), ("Quantity", INT),
                   ("Cost", MONEY), ("Revenue", MONEY), ("Profit", MONEY), ("Margin %", PERCENT)]
        rows = [
            [l["invoice_number"], l["date"], l["item"], l["category"], l["quantity"],
             l["cost_cents"], l["revenue_cents"], l["profit_cents"], l["margin_percent"]]
            for l in report["lines"]
        ]

    filters = report["filters"]
    return ReportTable(
        title="Profit & Loss Report",
        columns=columns,
        rows=rows,
        summary=[
            ("Period", _period_label(filters["start"], filters["end"]), TEXT),
            ("Total Revenue", report["total_revenue_cents"], MONEY),
            ("Total Cost", report["total_cost_cents"], MONEY),
            ("Net Profit", report["net_profit_cents"], MONEY),
            ("Net Margin", report["net_margin_percent"], PERCENT),
        ],
    )
