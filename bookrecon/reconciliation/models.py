"""Classification outcomes and resolution requests."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from bookrecon.models import BookData, BookRecord, BookSubmission, PricingData, PublisherData


class BookStatus(str, Enum):
    """How a submitted book relates to the catalog."""

    NEW = "NEW"
    DUPLICATE = "DUPLICATE"
    CONFLICT = "CONFLICT"
    AUTHOR_CONFLICT = "AUTHOR_CONFLICT"

    @property
    def is_conflict(self) -> bool:
        return self in (BookStatus.CONFLICT, BookStatus.AUTHOR_CONFLICT)


class PricingStatus(str, Enum):
    """Pricing sub-decision attached to a DUPLICATE."""

    ADD_PRICE = "ADD_PRICE"
    UPDATE_PRICE = "UPDATE_PRICE"
    NO_CHANGE = "NO_CHANGE"

    @classmethod
    def _missing_(cls, value: object) -> PricingStatus | None:
        # Older servers spell UPDATE_PRICE as UPDATE_POSSIBLE
        if value == "UPDATE_POSSIBLE":
            return cls.UPDATE_PRICE
        return None


class ResolutionAction(str, Enum):
    INSERT = "INSERT"
    KEEP_NEW = "KEEP_NEW"
    KEEP_OLD = "KEEP_OLD"
    KEEP_BOTH = "KEEP_BOTH"
    ADD_PRICE = "ADD_PRICE"
    UPDATE_PRICE = "UPDATE_PRICE"
    IGNORE = "IGNORE"

    @property
    def mutates(self) -> bool:
        """False for actions that only discard the submission."""
        return self not in (ResolutionAction.KEEP_OLD, ResolutionAction.IGNORE)


class FieldChange(BaseModel):
    """Old and new value of one conflicting book field."""

    old: Any = None
    new: Any = None


class PricingDifference(BaseModel):
    field: str
    existing: Any = None
    new: Any = None


class ReconciliationResult(BaseModel):
    """Outcome of one classification call.

    Consumed by exactly one resolution action and then discarded.
    """

    model_config = ConfigDict(populate_by_name=True)

    book_status: BookStatus = Field(
        validation_alias=AliasChoices("bookStatus", "status", "book_status"),
        serialization_alias="bookStatus",
    )
    pricing_status: PricingStatus | None = Field(
        default=None,
        validation_alias=AliasChoices("pricingStatus", "pricingAction", "pricing_status"),
        serialization_alias="pricingStatus",
    )
    message: str = ""
    conflict_fields: dict[str, FieldChange] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("conflictFields", "conflict_fields"),
        serialization_alias="conflictFields",
    )
    differences: list[PricingDifference] = Field(default_factory=list)
    book_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("bookId", "book_id"),
        serialization_alias="bookId",
    )
    pricing_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pricingId", "pricing_id"),
        serialization_alias="pricingId",
    )
    existing_book: BookRecord | None = Field(
        default=None,
        validation_alias=AliasChoices("existingBook", "existing_book"),
        serialization_alias="existingBook",
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # Servers send explicit nulls for empty maps/lists
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @model_validator(mode="after")
    def check_consistency(self) -> ReconciliationResult:
        status = self.book_status
        if status == BookStatus.DUPLICATE and self.pricing_status is None:
            raise ValueError("DUPLICATE result is missing its pricing status")
        if status != BookStatus.DUPLICATE and self.pricing_status is not None:
            raise ValueError(f"{status.value} result must not carry a pricing status")
        if status != BookStatus.NEW and not self.book_id:
            raise ValueError(f"{status.value} result must identify the matched book")
        if self.conflict_fields and not status.is_conflict:
            raise ValueError("conflictFields are only valid for conflicts")
        if self.differences and self.pricing_status != PricingStatus.UPDATE_PRICE:
            raise ValueError("differences are only valid for UPDATE_PRICE")
        return self

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ResolutionRequest(BaseModel):
    """Body of ``POST /api/books``: a chosen action plus its classification context."""

    model_config = ConfigDict(populate_by_name=True)

    book_data: BookData = Field(alias="bookData")
    pricing_data: PricingData = Field(alias="pricingData")
    publisher_data: PublisherData = Field(default_factory=PublisherData, alias="publisherData")
    status: BookStatus
    pricing_status: PricingStatus | None = Field(default=None, alias="pricingStatus")
    action: ResolutionAction = Field(alias="pricingAction")
    book_id: str | None = Field(default=None, alias="bookId")
    pricing_id: str | None = Field(default=None, alias="pricingId")

    @classmethod
    def for_result(
        cls,
        submission: BookSubmission,
        result: ReconciliationResult,
        action: ResolutionAction,
    ) -> ResolutionRequest:
        return cls(
            book_data=submission.book_data,
            pricing_data=submission.pricing_data,
            publisher_data=submission.publisher_data,
            status=result.book_status,
            pricing_status=result.pricing_status,
            action=action,
            book_id=result.book_id,
            pricing_id=result.pricing_id,
        )

    def submission(self) -> BookSubmission:
        return BookSubmission(
            book_data=self.book_data,
            pricing_data=self.pricing_data,
            publisher_data=self.publisher_data,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = ""
    action: ResolutionAction
    book_id: str | None = Field(default=None, alias="bookId")
    pricing_id: str | None = Field(default=None, alias="pricingId")
