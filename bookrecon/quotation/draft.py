"""Editable quotation state for the create and edit flows.

Input handlers coerce raw form values the same way the quotation form does:
quantities fall back to 1, prices and discounts fall back to 0, and nothing
negative is stored. Every summary and payload is re-derived from the current
lines; there is no incremental update path.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Context, Decimal
from typing import Any

import structlog

from bookrecon.config import get_config
from bookrecon.core.errors import QuotationValidationError
from bookrecon.quotation.calculator import (
    HUNDRED,
    ZERO,
    LineInput,
    QuotationSummary,
    calculate,
    to_decimal,
)
from bookrecon.quotation.models import (
    PreviewBook,
    Quotation,
    QuotationItem,
    QuotationPayload,
    QuotationStatus,
)

logger = structlog.get_logger()

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# Significant digits a float reproduces exactly; payloads carry floats
FLOAT_DIGITS = Context(prec=15)


def coerce_quantity(raw: Any) -> int:
    """Integer >= 1; anything unparsable or below 1 becomes 1."""
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, (int, float)):
        value = int(raw) if raw == raw else 0
    else:
        match = _LEADING_INT.match(str(raw or ""))
        value = int(match.group(1)) if match else 0
    return value if value >= 1 else 1


def coerce_non_negative(raw: Any) -> Decimal:
    """Decimal >= 0 for prices and discounts; invalid or negative becomes 0.

    Rounded to 15 significant digits so the value survives the float wire format.
    """
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if raw != raw:  # NaN
            return ZERO
        value = to_decimal(raw)
    else:
        match = _LEADING_NUMBER.match(str(raw or ""))
        if not match:
            return ZERO
        value = Decimal(match.group(1))
    if not value.is_finite() or value < 0:
        return ZERO
    return FLOAT_DIGITS.plus(value)


@dataclass
class DraftLine:
    book: PreviewBook
    quantity: int = 1
    custom_price: Decimal | None = None
    discount_percent: Decimal = ZERO

    @property
    def unit_price(self) -> Decimal:
        if self.custom_price is not None:
            return self.custom_price
        return to_decimal(self.book.lowest_price)


class QuotationDraft:
    """A quotation being built from a preview or edited from a saved one."""

    def __init__(
        self,
        customer: str = "",
        books: Iterable[PreviewBook] = (),
        status: QuotationStatus = QuotationStatus.DRAFT,
        valid_until: date | None = None,
        general_discount: Decimal | float | str = ZERO,
        tax_rate: Decimal | None = None,
    ):
        config = get_config()
        self.customer = (customer or "").strip()
        self.status = status
        self.valid_until = valid_until or date.today() + timedelta(
            days=config.quotation.validity_days
        )
        self.general_discount = coerce_non_negative(general_discount)
        self.tax_rate = tax_rate if tax_rate is not None else config.quotation.tax_rate
        self.lines: dict[str, DraftLine] = {}
        self.add_books(books)

    @classmethod
    def from_preview(
        cls,
        books: Iterable[PreviewBook],
        customer: str = "",
        valid_until: date | None = None,
    ) -> QuotationDraft:
        """Start a new quotation: quantity 1 and catalog price for every book."""
        return cls(customer=customer, books=books, valid_until=valid_until)

    @classmethod
    def from_quotation(cls, quotation: Quotation) -> QuotationDraft:
        """Load a saved quotation into the edit flow."""
        draft = cls(
            customer=quotation.customer,
            status=quotation.status,
            valid_until=quotation.valid_until.date(),
            general_discount=to_decimal(quotation.general_discount),
        )
        for item in quotation.items:
            draft.lines[item.book] = DraftLine(
                book=PreviewBook(
                    book_id=item.book,
                    title=item.title or "Unknown Book",
                    isbn=item.isbn,
                    publisher_name=item.publisher_name,
                    lowest_price=item.unit_price,
                ),
                quantity=item.quantity,
                custom_price=to_decimal(item.unit_price),
                discount_percent=to_decimal(item.discount),
            )
        return draft

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def book_ids(self) -> list[str]:
        return list(self.lines)

    def add_books(self, books: Iterable[PreviewBook]) -> None:
        for book in books:
            if book.book_id in self.lines:
                continue
            self.lines[book.book_id] = DraftLine(
                book=book, custom_price=to_decimal(book.lowest_price)
            )

    def remove_books(self, book_ids: Iterable[str]) -> None:
        for book_id in book_ids:
            self.lines.pop(book_id, None)

    async def sync_selection(
        self,
        selected_ids: Iterable[str],
        fetch_preview: Callable[[list[str]], Awaitable[list[PreviewBook]]],
    ) -> None:
        """Match the draft to a new selection, fetching previews only for added books."""
        selected = list(dict.fromkeys(selected_ids))
        removed = [book_id for book_id in self.lines if book_id not in selected]
        added = [book_id for book_id in selected if book_id not in self.lines]

        self.remove_books(removed)
        if added:
            self.add_books(await fetch_preview(added))
        logger.debug("quotation_selection_synced", added=added, removed=removed)

    # ------------------------------------------------------------------
    # Input handlers
    # ------------------------------------------------------------------

    def set_customer(self, customer: str) -> None:
        self.customer = (customer or "").strip()

    def set_quantity(self, book_id: str, raw: Any) -> None:
        self._line(book_id).quantity = coerce_quantity(raw)

    def increment(self, book_id: str) -> None:
        self._line(book_id).quantity += 1

    def decrement(self, book_id: str) -> None:
        line = self._line(book_id)
        line.quantity = line.quantity - 1 if line.quantity > 1 else 1

    def set_custom_price(self, book_id: str, raw: Any) -> None:
        self._line(book_id).custom_price = coerce_non_negative(raw)

    def set_item_discount(self, book_id: str, raw: Any) -> None:
        # No upper cap while typing; to_payload() rejects > 100
        self._line(book_id).discount_percent = coerce_non_negative(raw)

    def set_general_discount(self, raw: Any) -> None:
        self.general_discount = coerce_non_negative(raw)

    def set_status(self, status: QuotationStatus | str) -> None:
        try:
            self.status = QuotationStatus(status)
        except ValueError as exc:
            allowed = ", ".join(s.value for s in QuotationStatus)
            raise QuotationValidationError(
                {"status": f"'{status}' is not one of {allowed}"}
            ) from exc

    def set_valid_until(self, value: date | datetime | str) -> None:
        if isinstance(value, datetime):
            value = value.date()
        elif isinstance(value, str):
            try:
                value = date.fromisoformat(value[:10])
            except ValueError as exc:
                raise QuotationValidationError({"validUntil": "expected YYYY-MM-DD"}) from exc
        self.valid_until = value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def line_inputs(self) -> list[LineInput]:
        return [
            LineInput(
                book_id=book_id,
                unit_price=line.unit_price,
                quantity=line.quantity,
                discount_percent=line.discount_percent,
            )
            for book_id, line in self.lines.items()
        ]

    def summary(self) -> QuotationSummary:
        return calculate(self.line_inputs(), self.general_discount, self.tax_rate)

    def validate(self) -> None:
        errors: dict[str, str] = {}
        if not self.customer:
            errors["customer"] = "is required"
        if not self.lines:
            errors["items"] = "at least one book is required"
        for book_id, line in self.lines.items():
            if line.discount_percent > HUNDRED:
                errors[f"items.{book_id}.discount"] = "must be between 0 and 100"
        if self.general_discount > HUNDRED:
            errors["generalDiscount"] = "must be between 0 and 100"
        if errors:
            raise QuotationValidationError(errors)

    def to_payload(self) -> QuotationPayload:
        """Persistable quotation with every total recomputed from the lines."""
        self.validate()
        summary = self.summary()
        items = [
            QuotationItem(
                book=line.book_id,
                quantity=line.quantity,
                unit_price=float(line.unit_price),
                discount=float(line.discount_percent),
                total_price=float(line.line_total),
            )
            for line in summary.lines
        ]
        return QuotationPayload(
            customer=self.customer,
            items=items,
            sub_total=float(summary.subtotal),
            total_discount=float(summary.total_discount),
            grand_total=float(summary.grand_total),
            status=self.status,
            valid_until=datetime.combine(self.valid_until, time.min, tzinfo=timezone.utc),
            general_discount=float(self.general_discount),
        )

    def _line(self, book_id: str) -> DraftLine:
        try:
            return self.lines[book_id]
        except KeyError:
            raise QuotationValidationError({"book": f"{book_id} is not in this quotation"}) from None
