"""bookrecon Pydantic models for catalog data.

Wire field names follow the catalog API: envelopes are camelCase
(``bookData``, ``pricingData``) while book fields stay snake_case.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bookrecon.identifiers import isbn as isbn_utils

REQUIRED_BOOK_FIELDS = ("title", "author", "binding_type", "classification")


def _strip(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


class BookData(BaseModel):
    """Book metadata as submitted from the insert/edit form."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "The Great Gatsby",
                "author": "F. Scott Fitzgerald",
                "year": 2004,
                "publisher_name": "Scribner",
                "isbn": "9780743273565",
                "binding_type": "Paperback",
                "classification": "Fiction",
            }
        }
    )

    title: str
    author: str
    year: int = Field(ge=1, le=9999)
    publisher_name: str = ""
    isbn: str | None = None
    other_code: str | None = None
    edition: str | None = None
    binding_type: str
    classification: str
    remarks: str | None = None

    @field_validator(
        "title", "author", "publisher_name", "edition", "binding_type",
        "classification", "remarks", mode="before",
    )
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)

    @field_validator(*REQUIRED_BOOK_FIELDS)
    @classmethod
    def require_text(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("isbn", mode="before")
    @classmethod
    def normalize_isbn(cls, v: object) -> str | None:
        if v is None or not str(v).strip():
            return None
        if not isbn_utils.validate(str(v)):
            raise ValueError(f"'{v}' is not a valid ISBN-10 or ISBN-13")
        return isbn_utils.normalize(str(v))

    @field_validator("other_code", mode="before")
    @classmethod
    def normalize_other_code(cls, v: object) -> str | None:
        code = isbn_utils.normalize_other_code(None if v is None else str(v))
        return code or None

    @model_validator(mode="after")
    def exactly_one_identifier(self) -> BookData:
        if self.isbn and self.other_code:
            raise ValueError("isbn and other_code are mutually exclusive")
        if not self.isbn and not self.other_code:
            raise ValueError("either isbn or other_code is required")
        return self

    @property
    def identifier(self) -> str:
        """Normalized identifier used for catalog lookups."""
        return self.isbn or self.other_code or ""


class PricingData(BaseModel):
    """One source's price for a book."""

    source: str
    rate: float = Field(ge=0)
    discount: float = Field(default=0, ge=0, le=100)
    currency: str = "USD"

    @field_validator("source", "currency", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)

    @field_validator("source")
    @classmethod
    def require_source(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be blank")
        return v.upper()


class PublisherData(BaseModel):
    """Publisher details sent alongside a submission; extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None


class BookSubmission(BaseModel):
    """Body of ``POST /api/books/check-duplicate``."""

    model_config = ConfigDict(populate_by_name=True)

    book_data: BookData = Field(alias="bookData")
    pricing_data: PricingData = Field(alias="pricingData")
    publisher_data: PublisherData = Field(default_factory=PublisherData, alias="publisherData")

    @property
    def publisher_name(self) -> str:
        return (self.publisher_data.name or self.book_data.publisher_name or "").strip()

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BookUpdate(BaseModel):
    """Body of ``PUT /api/books/{id}``."""

    model_config = ConfigDict(populate_by_name=True)

    book_data: BookData = Field(alias="bookData")
    pricing_data: PricingData | None = Field(default=None, alias="pricingData")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BookRecord(BaseModel):
    """A persisted catalog book."""

    id: str
    title: str
    author: str
    year: int | None = None
    publisher_name: str | None = None
    isbn: str | None = None
    other_code: str | None = None
    edition: str | None = None
    binding_type: str | None = None
    classification: str | None = None
    remarks: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PricingRecord(BaseModel):
    """A persisted pricing row."""

    id: str
    source: str
    rate: float
    discount: float
    currency: str
    last_updated: datetime | None = None


class PricingStatistics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_sources: int = Field(default=0, alias="totalSources")
    average_rate: float = Field(default=0, alias="averageRate")
    min_rate: float = Field(default=0, alias="minRate")
    max_rate: float = Field(default=0, alias="maxRate")
    average_discount: float = Field(default=0, alias="averageDiscount")

    @classmethod
    def from_pricing(cls, pricing: list[PricingRecord]) -> PricingStatistics:
        if not pricing:
            return cls()
        rates = [p.rate for p in pricing]
        return cls(
            total_sources=len(pricing),
            average_rate=sum(rates) / len(rates),
            min_rate=min(rates),
            max_rate=max(rates),
            average_discount=sum(p.discount for p in pricing) / len(pricing),
        )


class BookPricingDetail(BaseModel):
    """Response of ``GET /api/books/{id}/pricing``."""

    success: bool = True
    book: BookRecord
    pricing: list[PricingRecord] = Field(default_factory=list)
    statistics: PricingStatistics = Field(default_factory=PricingStatistics)
    message: str = ""
