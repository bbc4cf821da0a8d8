"""Book insertion workflow: form -> classification -> chosen resolution."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from bookrecon.core.errors import LocalValidationError, SubmissionValidationError
from bookrecon.models import BookSubmission
from bookrecon.reconciliation.executor import ResolutionExecutor
from bookrecon.reconciliation.models import (
    ReconciliationResult,
    ResolutionAction,
    ResolutionResponse,
)

if TYPE_CHECKING:
    from bookrecon.api.client import CatalogApiClient


class InsertStep(str, Enum):
    FORM = "form"
    CHECK = "check"
    DONE = "done"


def build_submission(
    book_fields: Mapping[str, Any],
    pricing_fields: Mapping[str, Any],
    publisher_fields: Mapping[str, Any] | None = None,
) -> BookSubmission:
    """Validate raw form values locally.

    Raises SubmissionValidationError with one message per offending field;
    nothing invalid ever reaches the network.
    """
    try:
        return BookSubmission.model_validate(
            {
                "bookData": dict(book_fields),
                "pricingData": dict(pricing_fields),
                "publisherData": dict(publisher_fields or {}),
            }
        )
    except ValidationError as exc:
        raise SubmissionValidationError(field_errors(exc)) from exc


def field_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten pydantic errors into ``{"bookData.isbn": "message"}``."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        key = ".".join(str(part) for part in error["loc"]) or "__root__"
        message = error["msg"].removeprefix("Value error, ")
        errors.setdefault(key, message)
    return errors


class BookInsertionFlow:
    """State for one insert attempt.

    A classification result is consumed by exactly one resolution and then
    dropped; going back to the form discards it as well.
    """

    def __init__(self, client: CatalogApiClient, executor: ResolutionExecutor | None = None):
        self.client = client
        self.executor = executor or ResolutionExecutor(client)
        self.step = InsertStep.FORM
        self.submission: BookSubmission | None = None
        self.result: ReconciliationResult | None = None
        self.response: ResolutionResponse | None = None

    async def check(self, submission: BookSubmission) -> ReconciliationResult:
        """Classify ``submission``; on failure the flow stays on the form."""
        result = await self.client.check_duplicate(submission)
        self.submission = submission
        self.result = result
        self.response = None
        self.step = InsertStep.CHECK
        return result

    async def check_form(
        self,
        book_fields: Mapping[str, Any],
        pricing_fields: Mapping[str, Any],
        publisher_fields: Mapping[str, Any] | None = None,
    ) -> ReconciliationResult:
        submission = build_submission(book_fields, pricing_fields, publisher_fields)
        return await self.check(submission)

    def actions(self) -> list[ResolutionAction]:
        if self.step != InsertStep.CHECK or self.result is None:
            return []
        return self.executor.available_actions(self.result)

    @property
    def busy(self) -> bool:
        if self.submission is None or self.result is None:
            return False
        return self.executor.is_busy(self.submission, self.result)

    async def choose(self, action: ResolutionAction) -> ResolutionResponse:
        if self.step != InsertStep.CHECK or self.result is None or self.submission is None:
            raise LocalValidationError({"step": "no classification result to resolve"})

        response = await self.executor.resolve(self.submission, self.result, action)
        self.response = response
        self.result = None
        self.step = InsertStep.DONE
        return response

    def back_to_form(self) -> None:
        self.result = None
        self.response = None
        self.step = InsertStep.FORM
