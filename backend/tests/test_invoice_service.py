"""
Invoice creation transaction tests.

Verifies:
- Numbering: INV{YY}{MM}{NNNN} from a sequence that deletes never lower
- A successful invoice decrements stock, updates the customer and records
  change events in one commit
- A missing item or customer aborts before anything is written
- Overselling is allowed by default and rejected when disabled
- A duplicate invoice number rolls everything back
"""

from datetime import datetime

import pytest

from boutique.extensions import db
from boutique.models import Invoice, InvoiceLine, InventoryItem, Customer, ChangeEvent, DocumentSequence
from boutique.services import invoice_service
from boutique.services.document_service import generate_invoice_number, next_invoice_number, allocate_invoice_number
from boutique.services.invoice_service import (
    DraftLine,
    InvoiceDraft,
    InvoiceCommitError,
    InsufficientStockError,
    ItemNotFoundError,
    parse_draft,
)
from boutique.validation import ValidationError, NotFoundError


NOW = datetime(2026, 3, 5, 10, 30)


class TestInvoiceNumbering:

    def test_format(self):
        assert generate_invoice_number(0, datetime(2026, 3, 5)) == "INV26030001"
        assert generate_invoice_number(41, datetime(2025, 12, 31)) == "INV25120042"

    def test_grows_past_padding(self):
        assert generate_invoice_number(9999, NOW) == "INV260310000"

    def test_next_number_counts_existing(self, db_session, make_item, profile):
        item = make_item()
        assert next_invoice_number(NOW) == "INV26030001"
        invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)
        assert next_invoice_number(NOW) == "INV26030002"

    def test_preview_does_not_allocate(self, db_session):
        assert next_invoice_number(NOW) == "INV26030001"
        assert next_invoice_number(NOW) == "INV26030001"
        assert db_session.query(DocumentSequence).count() == 0

    def test_sequence_seeded_from_stored_invoices(self, db_session):
        db_session.add(Invoice(invoice_number="LEGACY-1", date=NOW, payment_method="Cash"))
        db_session.add(Invoice(invoice_number="LEGACY-2", date=NOW, payment_method="Cash"))
        db_session.commit()

        assert allocate_invoice_number(NOW) == "INV26030003"
        assert allocate_invoice_number(NOW) == "INV26030004"

    def test_delete_does_not_free_a_number(self, db_session, make_item, profile):
        item = make_item(quantity=50)
        sell = lambda: invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)

        first, _second, _third = sell(), sell(), sell()
        invoice_service.delete_invoice(first.id)

        assert next_invoice_number(NOW) == "INV26030004"
        assert sell().invoice_number == "INV26030004"

    def test_numbers_keep_rising_after_all_deleted(self, db_session, make_item, profile):
        item = make_item(quantity=50)
        for _ in range(2):
            invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)
            invoice_service.delete_invoice(invoice.id)

        assert db_session.query(Invoice).count() == 0
        invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)
        assert invoice.invoice_number == "INV26030003"


class TestParseDraft:

    def test_blank_lines_dropped(self):
        draft = parse_draft({"lines": [{"item_id": 3, "quantity": "2"}, {"item_id": "", "quantity": 1}]})
        assert [(l.item_id, l.quantity) for l in draft.lines] == [(3, 2)]
        assert draft.payment_method == "Cash"
        assert draft.tax_rate_bps is None
        assert draft.discount_rate_bps == 0

    def test_requires_a_line(self):
        with pytest.raises(ValidationError, match="at least one item"):
            parse_draft({"lines": [{"item_id": None}]})

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5, True])
    def test_rejects_bad_quantity(self, quantity):
        with pytest.raises(ValidationError):
            parse_draft({"lines": [{"item_id": 1, "quantity": quantity}]})

    def test_rejects_unknown_payment_method(self):
        with pytest.raises(ValidationError, match="payment_method"):
            parse_draft({"lines": [{"item_id": 1, "quantity": 1}], "payment_method": "Cheque"})

    def test_rates_converted_to_bps(self):
        draft = parse_draft({
            "lines": [{"item_id": 1, "quantity": 1}],
            "discount_percent": 12.5,
            "tax_percent": "5",
        })
        assert draft.discount_rate_bps == 1250
        assert draft.tax_rate_bps == 500

    def test_rejects_discount_over_hundred(self):
        with pytest.raises(ValidationError):
            parse_draft({"lines": [{"item_id": 1, "quantity": 1}], "discount_percent": 101})

    @pytest.mark.parametrize("percent, bps", [
        (1.005, 101),
        ("2.675", 268),
        (0.125, 13),
        ("12.5", 1250),
        (100, 10000),
    ])
    def test_rates_round_half_up(self, percent, bps):
        draft = parse_draft({"lines": [{"item_id": 1, "quantity": 1}], "tax_percent": percent})
        assert draft.tax_rate_bps == bps

    @pytest.mark.parametrize("percent", ["abc", "NaN", "Infinity", float("inf"), -0.01, 100.001, [5], {"v": 5}])
    def test_rejects_bad_rate(self, percent):
        with pytest.raises(ValidationError):
            parse_draft({"lines": [{"item_id": 1, "quantity": 1}], "tax_percent": percent})


class TestCreateInvoice:

    def test_writes_invoice_stock_and_customer(self, db_session, make_item, make_customer, profile):
        kurti = make_item(name="Cotton Kurti", price_cents=50000, cost_cents=30000, quantity=10)
        saree = make_item(name="Silk Saree", category="Sarees", price_cents=250000, cost_cents=180000, quantity=3)
        customer = make_customer()

        invoice = invoice_service.create_invoice(
            InvoiceDraft(
                lines=[DraftLine(kurti.id, 2), DraftLine(saree.id, 1)],
                customer_id=customer.id,
                payment_method="UPI",
                discount_rate_bps=1000,
            ),
            now=NOW,
        )

        assert invoice.invoice_number == "INV26030001"
        assert invoice.subtotal_cents == 350000
        assert invoice.discount_cents == 35000
        assert invoice.tax_cents == 56700
        assert invoice.total_cents == 371700
        assert invoice.tax_rate_bps == 1800
        # Bill-to defaults to the linked customer
        assert invoice.customer_name == "Priya Sharma"
        assert invoice.phone == "9876543210"

        lines = db_session.query(InvoiceLine).order_by(InvoiceLine.position).all()
        assert [(l.name, l.quantity, l.unit_price_cents, l.unit_cost_cents, l.line_total_cents) for l in lines] == [
            ("Cotton Kurti", 2, 50000, 30000, 100000),
            ("Silk Saree", 1, 250000, 180000, 250000),
        ]

        assert db.session.get(InventoryItem, kurti.id).quantity == 8
        assert db.session.get(InventoryItem, saree.id).quantity == 2

        customer = db.session.get(Customer, customer.id)
        assert customer.total_spent_cents == 371700
        assert customer.visit_count == 1
        assert customer.last_visit_at == NOW

        events = db_session.query(ChangeEvent).order_by(ChangeEvent.id).all()
        assert ("invoices", "created", invoice.id) in [(e.collection, e.action, e.entity_id) for e in events]
        assert {e.entity_id for e in events if e.collection == "inventory"} == {kurti.id, saree.id}
        assert [e.entity_id for e in events if e.collection == "customers"] == [customer.id]

    def test_walk_in_sale_touches_no_customer(self, db_session, make_item, make_customer, profile):
        item = make_item(quantity=5)
        customer = make_customer()

        invoice = invoice_service.create_invoice(
            InvoiceDraft(lines=[DraftLine(item.id, 1)], customer_name="Walk-in guest"), now=NOW
        )

        assert invoice.customer_id is None
        customer = db.session.get(Customer, customer.id)
        assert customer.visit_count == 0
        assert customer.total_spent_cents == 0

    def test_repeat_visits_accumulate(self, db_session, make_item, make_customer, profile):
        item = make_item(price_cents=10000, quantity=10)
        customer = make_customer()

        for _ in range(2):
            invoice_service.create_invoice(
                InvoiceDraft(lines=[DraftLine(item.id, 1)], customer_id=customer.id, tax_rate_bps=0),
                now=NOW,
            )

        customer = db.session.get(Customer, customer.id)
        assert customer.visit_count == 2
        assert customer.total_spent_cents == 20000

    def test_same_item_on_two_lines(self, db_session, make_item, profile):
        item = make_item(quantity=10)
        invoice_service.create_invoice(
            InvoiceDraft(lines=[DraftLine(item.id, 2), DraftLine(item.id, 3)]), now=NOW
        )
        assert db.session.get(InventoryItem, item.id).quantity == 5

    def test_explicit_tax_rate_overrides_profile(self, db_session, make_item, profile):
        item = make_item(price_cents=10000)
        invoice = invoice_service.create_invoice(
            InvoiceDraft(lines=[DraftLine(item.id, 1)], tax_rate_bps=500), now=NOW
        )
        assert invoice.tax_cents == 500
        assert invoice.tax_rate_bps == 500

    def test_snapshot_survives_item_delete(self, db_session, make_item, profile):
        item_id = make_item(name="Linen Top", price_cents=80000).id
        invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item_id, 1)]), now=NOW)

        db_session.delete(db.session.get(InventoryItem, item_id))
        db_session.commit()

        line = invoice_service.get_invoice(invoice.id).lines[0]
        assert line.name == "Linen Top"
        assert line.unit_price_cents == 80000
        assert line.item_id == item_id


class TestCreateInvoiceFailures:

    def test_missing_item_aborts_without_writes(self, db_session, make_item, make_customer, profile):
        item = make_item(quantity=10)
        customer = make_customer()

        with pytest.raises(ItemNotFoundError) as excinfo:
            invoice_service.create_invoice(
                InvoiceDraft(lines=[DraftLine(item.id, 1), DraftLine(999999, 1)], customer_id=customer.id),
                now=NOW,
            )

        assert excinfo.value.details["missing_item_ids"] == [999999]
        assert isinstance(excinfo.value, NotFoundError)
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(ChangeEvent).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert db.session.get(InventoryItem, item.id).quantity == 10
        assert db.session.get(Customer, customer.id).visit_count == 0

    def test_missing_customer_aborts(self, db_session, make_item, profile):
        item = make_item(quantity=10)
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(
                InvoiceDraft(lines=[DraftLine(item.id, 1)], customer_id=424242), now=NOW
            )
        assert db_session.query(Invoice).count() == 0
        assert db.session.get(InventoryItem, item.id).quantity == 10

    def test_oversell_allowed_by_default(self, db_session, make_item, profile):
        item = make_item(quantity=1)
        invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 3)]), now=NOW)
        assert db.session.get(InventoryItem, item.id).quantity == -2

    def test_oversell_rejected_when_disabled(self, app, db_session, make_item, profile, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_NEGATIVE_STOCK", False)
        item = make_item(quantity=2)

        with pytest.raises(InsufficientStockError) as excinfo:
            invoice_service.create_invoice(
                InvoiceDraft(lines=[DraftLine(item.id, 2), DraftLine(item.id, 1)]), now=NOW
            )

        detail = excinfo.value.details["items"][0]
        assert detail["requested_quantity"] == 3
        assert detail["on_hand"] == 2
        assert db_session.query(Invoice).count() == 0
        assert db.session.get(InventoryItem, item.id).quantity == 2

    def test_exact_stock_allowed_when_oversell_disabled(self, app, db_session, make_item, profile, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_NEGATIVE_STOCK", False)
        item = make_item(quantity=2)
        invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 2)]), now=NOW)
        assert db.session.get(InventoryItem, item.id).quantity == 0

    def test_number_collision_rolls_back_everything(self, db_session, make_item, make_customer, profile):
        item = make_item(quantity=10)
        customer = make_customer()

        # One stored invoice already holds the number the next sale will compute
        db_session.add(Invoice(invoice_number="INV26030002", date=NOW, payment_method="Cash"))
        db_session.commit()

        with pytest.raises(InvoiceCommitError) as excinfo:
            invoice_service.create_invoice(
                InvoiceDraft(lines=[DraftLine(item.id, 4)], customer_id=customer.id), now=NOW
            )

        err = excinfo.value
        assert err.number_conflict is True
        assert err.details == {
            "invoice_written": False,
            "inventory_updated": False,
            "customer_updated": False,
        }
        assert db_session.query(Invoice).count() == 1
        assert db_session.query(InvoiceLine).count() == 0
        assert db_session.query(ChangeEvent).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert db.session.get(InventoryItem, item.id).quantity == 10
        customer = db.session.get(Customer, customer.id)
        assert customer.visit_count == 0
        assert customer.total_spent_cents == 0


class TestInvoiceAdministration:

    def test_header_edit_keeps_totals(self, db_session, make_item, profile):
        item = make_item()
        invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)
        total = invoice.total_cents

        updated = invoice_service.update_invoice(invoice.id, {"payment_method": "Card", "customer_name": "Asha"})
        assert updated.payment_method == "Card"
        assert updated.customer_name == "Asha"
        assert updated.total_cents == total

    def test_header_edit_rejects_other_fields(self, db_session, make_item, profile):
        item = make_item()
        invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 1)]), now=NOW)
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice.id, {"total_cents": 1})

    def test_delete_does_not_restock(self, db_session, make_item, profile):
        item = make_item(quantity=5)
        invoice = invoice_service.create_invoice(InvoiceDraft(lines=[DraftLine(item.id, 2)]), now=NOW)

        invoice_service.delete_invoice(invoice.id)

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceLine).count() == 0
        assert db.session.get(InventoryItem, item.id).quantity == 3

    def test_list_filters(self, db_session, make_item, profile):
        item = make_item(quantity=50)
        invoice_service.create_invoice(
            InvoiceDraft(lines=[DraftLine(item.id, 1)], customer_name="Meera", payment_method="Card"),
            now=datetime(2026, 3, 4, 9, 0),
        )
        invoice_service.create_invoice(
            InvoiceDraft(lines=[DraftLine(item.id, 1)], customer_name="Kavya", payment_method="Cash"),
            now=NOW,
        )

        assert invoice_service.list_invoices()["count"] == 2
        assert [i["customer_name"] for i in invoice_service.list_invoices(search="mee")["items"]] == ["Meera"]
        assert [i["customer_name"] for i in invoice_service.list_invoices(payment_method="Cash")["items"]] == ["Kavya"]
        on_day = invoice_service.list_invoices(on_date=datetime(2026, 3, 4))
        assert [i["customer_name"] for i in on_day["items"]] == ["Meera"]

        page = invoice_service.list_invoices(page=1, per_page=1)
        assert page["pagination"]["total"] == 2
        assert page["pagination"]["has_next"] is True
        # Newest first
        assert page["items"][0]["customer_name"] == "Kavya"
