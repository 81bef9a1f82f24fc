"""
Reporting tests.

Verifies:
- Stock level buckets (quantity == low threshold is not low stock)
- Dashboard, sales, inventory and profit & loss aggregates
"""

from datetime import datetime

import pytest

from boutique.services import reporting_service
from boutique.services.inventory_service import classify_stock_level, is_low_stock, low_stock_items
from boutique.services.invoice_service import create_invoice, InvoiceDraft, DraftLine
from boutique.validation import ValidationError


NOW = datetime(2026, 3, 10, 12, 0)


@pytest.mark.parametrize("quantity,level", [
    (-3, "low"),
    (0, "low"),
    (9, "low"),
    (10, "medium"),
    (49, "medium"),
    (50, "high"),
    (500, "high"),
])
def test_classify_stock_level(quantity, level):
    assert classify_stock_level(quantity, 10, 50) == level


def test_threshold_is_not_low():
    assert is_low_stock(9, 10) is True
    assert is_low_stock(10, 10) is False


def test_low_stock_items_uses_config_threshold(db_session, make_item):
    make_item(name="A", quantity=9)
    make_item(name="B", quantity=10)
    make_item(name="C", quantity=0)
    assert [i.name for i in low_stock_items()] == ["C", "A"]
    assert [i.name for i in low_stock_items(threshold=1)] == ["C"]


@pytest.fixture
def sales(db_session, make_item, make_customer, profile):
    """
    Three invoices:
    - 2026-03-01 Cash: 2 x Kurti (500.00, cost 300.00)
    - 2026-03-09 UPI:  1 x Saree (2500.00, cost 1800.00) with 10% discount
    - 2026-03-10 Card: 1 x Kurti + 1 x Scarf sold under cost (200.00, cost 250.00)
    All at 0% tax to keep the arithmetic readable.
    """
    kurti = make_item(name="Cotton Kurti", category="Kurtis", price_cents=50000, cost_cents=30000, quantity=20)
    saree = make_item(name="Silk Saree", category="Sarees", price_cents=250000, cost_cents=180000, quantity=5)
    scarf = make_item(name="Chiffon Scarf", category="Accessories", price_cents=20000, cost_cents=25000, quantity=60)
    customer = make_customer()

    create_invoice(
        InvoiceDraft(lines=[DraftLine(kurti.id, 2)], payment_method="Cash", tax_rate_bps=0),
        now=datetime(2026, 3, 1, 11, 0),
    )
    create_invoice(
        InvoiceDraft(lines=[DraftLine(saree.id, 1)], payment_method="UPI", tax_rate_bps=0,
                     discount_rate_bps=1000, customer_id=customer.id),
        now=datetime(2026, 3, 9, 15, 0),
    )
    create_invoice(
        InvoiceDraft(lines=[DraftLine(kurti.id, 1), DraftLine(scarf.id, 1)], payment_method="Card", tax_rate_bps=0),
        now=datetime(2026, 3, 10, 10, 0),
    )
    return {"kurti": kurti, "saree": saree, "scarf": scarf}


class TestDashboard:

    def test_headline_numbers(self, sales):
        d = reporting_service.dashboard(now=NOW)

        assert d["today_invoice_count"] == 1
        assert d["today_sales_cents"] == 70000
        assert d["total_invoices"] == 3
        assert d["total_revenue_cents"] == 100000 + 225000 + 70000
        # Cost from line snapshots: 2*300 + 1800 + 300 + 250
        assert d["total_cost_cents"] == 60000 + 180000 + 30000 + 25000
        assert d["total_profit_cents"] == (100000 + 250000 + 70000) - d["total_cost_cents"]

    def test_recent_and_trend(self, sales):
        d = reporting_service.dashboard(now=NOW)

        assert len(d["recent_invoices"]) == 3
        assert d["recent_invoices"][0]["payment_method"] == "Card"

        days = d["last_7_days"]
        assert [day["date"] for day in days][0] == "2026-03-04"
        assert days[-1] == {"date": "2026-03-10", "total_cents": 70000, "invoice_count": 1}

        wow = d["week_over_week"]
        assert wow["this_week_cents"] == 225000 + 70000
        assert wow["previous_week_cents"] == 100000
        assert wow["change_percent"] == 195.0

    def test_stock_buckets(self, sales):
        d = reporting_service.dashboard(now=NOW)
        # Kurti 17 -> medium, Saree 4 -> low, Scarf 59 -> high
        assert d["stock_levels"] == {"low": 1, "medium": 1, "high": 1}
        assert d["low_stock_count"] == 1
        assert d["low_stock_items"][0]["name"] == "Silk Saree"

    def test_empty_store(self, db_session):
        d = reporting_service.dashboard(now=NOW)
        assert d["total_revenue_cents"] == 0
        assert d["week_over_week"]["change_percent"] is None
        assert len(d["last_7_days"]) == 7


class TestSalesReport:

    def test_range_and_aggregates(self, sales):
        r = reporting_service.sales_report(start="2026-03-05", end="2026-03-10")

        assert r["invoice_count"] == 2
        assert r["total_revenue_cents"] == 225000 + 70000
        assert r["average_invoice_cents"] == 147500
        assert [d["date"] for d in r["sales_by_date"]] == ["2026-03-09", "2026-03-10"]
        assert {p["payment_method"]: p["count"] for p in r["payment_distribution"]} == {"Card": 1, "UPI": 1}
        # Category sales use line totals (before invoice discount)
        assert r["sales_by_category"][0] == {"category": "Sarees", "total_cents": 250000}

    def test_end_date_is_inclusive(self, sales):
        r = reporting_service.sales_report(start="2026-03-10", end="2026-03-10")
        assert r["invoice_count"] == 1

    def test_top_products(self, sales):
        r = reporting_service.sales_report(top_n=2)
        assert [p["name"] for p in r["top_products"]] == ["Cotton Kurti", "Silk Saree"]
        assert r["top_products"][0]["quantity"] == 3

    def test_invalid_range(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.sales_report(start="2026-03-10", end="2026-03-01")
        with pytest.raises(ValidationError):
            reporting_service.sales_report(start="not-a-date")

    def test_export_table(self, sales):
        table = reporting_service.sales_table(reporting_service.sales_report())
        assert table.headers == ["Invoice ID", "Date", "Customer", "Payment", "Total"]
        assert len(table.rows) == 3
        assert table.summary[0][0] == "Period"


class TestInventoryReport:

    def test_totals(self, sales):
        r = reporting_service.inventory_report()
        # Kurti 17, Saree 4, Scarf 59 after sales
        assert r["total_items"] == 3
        assert r["total_units"] == 17 + 4 + 59
        assert r["total_value_cents"] == 17 * 50000 + 4 * 250000 + 59 * 20000
        assert r["low_stock_count"] == 1
        assert r["potential_profit_cents"] == 17 * 20000 + 4 * 70000 + 59 * -5000

    def test_filters(self, sales):
        assert reporting_service.inventory_report(category="Sarees")["total_items"] == 1
        high = reporting_service.inventory_report(stock_level="high")
        assert [i["name"] for i in high["items"]] == ["Chiffon Scarf"]
        assert high["items"][0]["stock_level"] == "high"

    def test_rejects_unknown_stock_level(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.inventory_report(stock_level="critical")


class TestProfitLoss:

    def test_lines_and_totals(self, sales):
        r = reporting_service.profit_loss_report()

        assert len(r["lines"]) == 4
        assert r["total_revenue_cents"] == 100000 + 250000 + 50000 + 20000
        assert r["total_cost_cents"] == 60000 + 180000 + 30000 + 25000
        assert r["net_profit_cents"] == r["total_revenue_cents"] - r["total_cost_cents"]
        assert r["profitable_items"] == 3
        assert r["loss_items"] == 1

        scarf = next(l for l in r["lines"] if l["item"] == "Chiffon Scarf")
        assert scarf["profit_cents"] == -5000
        assert scarf["margin_percent"] == -25.0

    def test_filters(self, sales):
        r = reporting_service.profit_loss_report(category="Kurtis")
        assert {l["item"] for l in r["lines"]} == {"Cotton Kurti"}

        r = reporting_service.profit_loss_report(item="saree")
        assert [l["item"] for l in r["lines"]] == ["Silk Saree"]
        assert r["net_margin_percent"] == 28.0

    def test_pdf_table_is_narrower(self, sales):
        report = reporting_service.profit_loss_report()
        assert len(reporting_service.profit_loss_table(report).headers) == 9
        assert reporting_service.profit_loss_table(report, for_pdf=True).headers == [
            "Invoice", "Date", "Item", "Qty", "Cost", "Revenue", "Profit",
        ]
