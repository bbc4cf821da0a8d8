"""Quotation pricing: item discounts, general discount and tax.

Per line:
    effective_price = unit_price * (1 - discount% / 100)
    line_total      = effective_price * quantity

Aggregate:
    subtotal                = sum(line_total)
    discount_amount         = subtotal * general_discount% / 100
    subtotal_after_discount = subtotal - discount_amount
    tax                     = subtotal_after_discount * tax_rate
    grand_total             = subtotal_after_discount + tax
    total_discount          = item discounts + (subtotal - item discounts) * general_discount% / 100

All arithmetic is Decimal, so recomputing from the same inputs is exact.
Inputs given as float go through ``str()`` first to keep their printed value.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from bookrecon.config import get_config

HUNDRED = Decimal(100)
ZERO = Decimal(0)


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True, slots=True)
class LineInput:
    book_id: str
    unit_price: Decimal
    quantity: int = 1
    discount_percent: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class LineResult:
    book_id: str
    unit_price: Decimal
    quantity: int
    discount_percent: Decimal
    effective_price: Decimal
    line_total: Decimal
    gross_total: Decimal
    discount_amount: Decimal  # item discount measured against the gross total


@dataclass(frozen=True, slots=True)
class QuotationSummary:
    lines: tuple[LineResult, ...]
    subtotal: Decimal
    general_discount_percent: Decimal
    discount_amount: Decimal
    subtotal_after_discount: Decimal
    tax_rate: Decimal
    tax: Decimal
    grand_total: Decimal

    @property
    def item_discount_total(self) -> Decimal:
        return sum((line.discount_amount for line in self.lines), ZERO)

    @property
    def total_discount(self) -> Decimal:
        """Reported discount: item discounts plus the general percentage of
        ``subtotal - item discounts``.

        ``subtotal`` is already net of item discounts, so the general part
        here is smaller than ``discount_amount`` whenever items carry a
        discount. Two items at 100, 10% off, qty 2, general 10%:
        40 + (360 - 40) * 10% = 72.
        """
        general_base = self.subtotal - self.item_discount_total
        return self.item_discount_total + general_base * self.general_discount_percent / HUNDRED


def price_line(line: LineInput) -> LineResult:
    unit_price = to_decimal(line.unit_price)
    discount = to_decimal(line.discount_percent)
    quantity = int(line.quantity)

    effective_price = unit_price * (1 - discount / HUNDRED)
    gross_total = unit_price * quantity
    return LineResult(
        book_id=line.book_id,
        unit_price=unit_price,
        quantity=quantity,
        discount_percent=discount,
        effective_price=effective_price,
        line_total=effective_price * quantity,
        gross_total=gross_total,
        discount_amount=gross_total * discount / HUNDRED,
    )


def calculate(
    lines: Sequence[LineInput],
    general_discount_percent: Decimal | float | int | str | None = ZERO,
    tax_rate: Decimal | None = None,
) -> QuotationSummary:
    """Price a quotation. ``tax_rate`` defaults to the configured rate (5%)."""
    if tax_rate is None:
        tax_rate = get_config().quotation.tax_rate

    priced = tuple(price_line(line) for line in lines)
    general = to_decimal(general_discount_percent)

    subtotal = sum((line.line_total for line in priced), ZERO)
    discount_amount = subtotal * general / HUNDRED
    after_discount = subtotal - discount_amount
    tax = after_discount * tax_rate

    return QuotationSummary(
        lines=priced,
        subtotal=subtotal,
        general_discount_percent=general,
        discount_amount=discount_amount,
        subtotal_after_discount=after_discount,
        tax_rate=tax_rate,
        tax=tax,
        grand_total=after_discount + tax,
    )
