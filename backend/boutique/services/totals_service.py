# Overview: Pure invoice arithmetic (subtotal, discount, tax, total) in integer cents.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Union

Rate = Union[int, float, str, Decimal]

DEFAULT_TAX_RATE_PERCENT = 18


class LineAmount(NamedTuple):
    unit_price_cents: int
    quantity: int


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def round_cents(value: Decimal) -> int:
    """Round half-up to a whole cent."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, rate_percent: Rate) -> int:
    return round_cents(Decimal(amount_cents) * Decimal(str(rate_percent)) / Decimal(100))


def calculate_invoice_totals(
    lines: Iterable[LineAmount],
    tax_rate_percent: Rate = DEFAULT_TAX_RATE_PERCENT,
    discount_rate_percent: Rate = 0,
) -> InvoiceTotals:
    """
    Compute invoice totals from (unit_price_cents, quantity) lines.

    Tax is charged on the discounted amount:

        subtotal = sum(price * quantity)
        discount = subtotal * discount% / 100
        tax      = (subtotal - discount) * tax% / 100
        total    = subtotal - discount + tax

    discount and tax are each rounded half-up to the cent before the total is
    formed, so total == subtotal - discount + tax holds exactly. Any object
    with unit_price_cents and quantity attributes works as a line (InvoiceLine
    included). Inputs are not validated; an empty list gives all zeros.
    """
    subtotal = sum(line.unit_price_cents * line.quantity for line in lines)
    discount = percent_of(subtotal, discount_rate_percent)
    tax = percent_of(subtotal - discount, tax_rate_percent)
    return InvoiceTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        total_cents=subtotal - discount + tax,
    )


def bps_to_percent(bps: int) -> Decimal:
    return Decimal(bps) / Decimal(100)
