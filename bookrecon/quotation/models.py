"""Quotation data structures shared by the draft, the client and the API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QuotationStatus(str, Enum):
    """Quotation labels. Any status may be set from any other."""

    DRAFT = "Draft"
    SENT = "Sent"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class PreviewBook(BaseModel):
    """A selected book as returned by ``GET /api/quotations/preview``."""

    model_config = ConfigDict(populate_by_name=True)

    book_id: str = Field(alias="bookId")
    title: str = ""
    isbn: str | None = None
    publisher_name: str | None = None
    lowest_price: float = Field(default=0, ge=0, alias="lowestPrice")
    currency: str = "USD"


class QuotationItem(BaseModel):
    """One line of a persisted quotation.

    ``title``/``isbn``/``publisher_name`` are display fields filled in by the
    server on reads; they are never required on writes.
    """

    model_config = ConfigDict(populate_by_name=True)

    book: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0, alias="unitPrice")
    discount: float = Field(default=0, ge=0, le=100)
    total_price: float = Field(ge=0, alias="totalPrice")
    title: str | None = None
    isbn: str | None = None
    publisher_name: str | None = None


class QuotationPayload(BaseModel):
    """Body of ``POST /api/quotations`` and ``PUT /api/quotations/{id}``."""

    model_config = ConfigDict(populate_by_name=True)

    customer: str = Field(min_length=1)
    items: list[QuotationItem] = Field(min_length=1)
    sub_total: float = Field(alias="subTotal")
    total_discount: float = Field(alias="totalDiscount")
    grand_total: float = Field(alias="grandTotal")
    status: QuotationStatus = QuotationStatus.DRAFT
    valid_until: datetime = Field(alias="validUntil")
    general_discount: float = Field(default=0, ge=0, le=100, alias="generalDiscount")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Quotation(QuotationPayload):
    """A persisted quotation."""

    id: str
    quotation_id: str | None = Field(default=None, alias="quotationId")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
