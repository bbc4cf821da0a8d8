"""Reconciliation classifier.

Decides how a submission relates to catalog books sharing its normalized
identifier, and which resolution actions each outcome permits.

Outcomes:
- NEW: no candidate shares the identifier
- DUPLICATE: identifier and compared metadata match; a pricing decision
  (ADD_PRICE / UPDATE_PRICE / NO_CHANGE) is attached
- AUTHOR_CONFLICT: the author differs (reported even if other fields differ too)
- CONFLICT: any other compared field differs
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from bookrecon.core.errors import ApiError, InvalidResolutionError
from bookrecon.models import BookData, BookRecord, BookSubmission, PricingData, PricingRecord
from bookrecon.reconciliation.models import (
    BookStatus,
    FieldChange,
    PricingDifference,
    PricingStatus,
    ReconciliationResult,
    ResolutionAction,
)

logger = structlog.get_logger()

COMPARED_FIELDS = ("title", "author", "edition", "binding_type", "classification")
PRICING_FIELDS = ("rate", "discount", "currency")

CONFLICT_ACTIONS = frozenset(
    {ResolutionAction.KEEP_NEW, ResolutionAction.KEEP_OLD, ResolutionAction.KEEP_BOTH}
)


@dataclass(slots=True)
class CatalogEntry:
    """An existing book with its pricing rows, as seen by the classifier."""

    book: BookRecord
    pricing: list[PricingRecord] = field(default_factory=list)


def classify(
    submission: BookSubmission,
    candidates: Sequence[CatalogEntry],
) -> ReconciliationResult:
    """Classify ``submission`` against books sharing its identifier.

    ``candidates`` must already be filtered to the submission's normalized
    identifier; when there are several, one with equal metadata is preferred,
    otherwise the first (oldest) is compared.
    """
    book_data = submission.book_data
    identifier = book_data.identifier

    if not candidates:
        return ReconciliationResult(
            book_status=BookStatus.NEW,
            message=f"No catalog entry matches {identifier}; the book can be inserted.",
        )

    target = _pick_target(book_data, candidates)
    conflicts = diff_book_fields(book_data, target.book)

    if conflicts:
        status = BookStatus.AUTHOR_CONFLICT if "author" in conflicts else BookStatus.CONFLICT
        if status == BookStatus.AUTHOR_CONFLICT:
            message = f"A book with identifier {identifier} exists under a different author."
        else:
            fields = ", ".join(conflicts)
            message = f"A book with identifier {identifier} exists but differs in: {fields}."
        logger.info(
            "submission_classified",
            status=status.value,
            identifier=identifier,
            book_id=target.book.id,
            conflict_fields=list(conflicts),
        )
        return ReconciliationResult(
            book_status=status,
            message=message,
            conflict_fields=conflicts,
            book_id=target.book.id,
            existing_book=target.book,
        )

    pricing_status, matched, differences = decide_pricing(submission.pricing_data, target.pricing)
    source = submission.pricing_data.source
    if pricing_status == PricingStatus.ADD_PRICE:
        message = f"Book already exists; no pricing recorded from '{source}' yet."
    elif pricing_status == PricingStatus.UPDATE_PRICE:
        message = f"Book already exists; pricing from '{source}' differs from the recorded row."
    else:
        message = "Book and pricing already exist; nothing to change."

    logger.info(
        "submission_classified",
        status=BookStatus.DUPLICATE.value,
        pricing_status=pricing_status.value,
        identifier=identifier,
        book_id=target.book.id,
    )
    return ReconciliationResult(
        book_status=BookStatus.DUPLICATE,
        pricing_status=pricing_status,
        message=message,
        differences=differences,
        book_id=target.book.id,
        pricing_id=matched.id if matched else None,
        existing_book=target.book,
    )


def diff_book_fields(book_data: BookData, existing: BookRecord) -> dict[str, FieldChange]:
    """Compared fields whose values differ, keyed by field name."""
    conflicts: dict[str, FieldChange] = {}
    for name in COMPARED_FIELDS:
        old = getattr(existing, name)
        new = getattr(book_data, name)
        if _comparable(old) != _comparable(new):
            conflicts[name] = FieldChange(old=old, new=new)
    return conflicts


def decide_pricing(
    pricing_data: PricingData,
    existing: Sequence[PricingRecord],
) -> tuple[PricingStatus, PricingRecord | None, list[PricingDifference]]:
    """Pricing decision for a DUPLICATE: match by source, then diff the values."""
    source_key = _comparable(pricing_data.source)
    matched = next((p for p in existing if _comparable(p.source) == source_key), None)
    if matched is None:
        return PricingStatus.ADD_PRICE, None, []

    differences = [
        PricingDifference(field=name, existing=getattr(matched, name), new=getattr(pricing_data, name))
        for name in PRICING_FIELDS
        if _pricing_value(getattr(matched, name)) != _pricing_value(getattr(pricing_data, name))
    ]
    if differences:
        return PricingStatus.UPDATE_PRICE, matched, differences
    return PricingStatus.NO_CHANGE, matched, []


def allowed_actions(result: ReconciliationResult) -> frozenset[ResolutionAction]:
    """Actions a user may choose for ``result``.

    Exhaustive over BookStatus and PricingStatus; an unknown member raises
    instead of silently offering nothing.
    """
    status = result.book_status
    if status == BookStatus.NEW:
        return frozenset({ResolutionAction.INSERT})
    if status in (BookStatus.CONFLICT, BookStatus.AUTHOR_CONFLICT):
        return CONFLICT_ACTIONS
    if status == BookStatus.DUPLICATE:
        pricing_status = result.pricing_status
        if pricing_status == PricingStatus.ADD_PRICE:
            return frozenset({ResolutionAction.ADD_PRICE})
        if pricing_status == PricingStatus.UPDATE_PRICE:
            return frozenset({ResolutionAction.UPDATE_PRICE, ResolutionAction.IGNORE})
        if pricing_status == PricingStatus.NO_CHANGE:
            return frozenset()
        raise ValueError(f"Unhandled pricing status: {pricing_status!r}")
    raise ValueError(f"Unhandled book status: {status!r}")


def check_action(result: ReconciliationResult, action: ResolutionAction) -> None:
    """Raise InvalidResolutionError unless ``action`` is offered for ``result``."""
    offered = allowed_actions(result)
    if action not in offered:
        label = result.book_status.value
        if result.pricing_status is not None:
            label = f"{label}/{result.pricing_status.value}"
        choices = ", ".join(sorted(a.value for a in offered)) or "none"
        raise InvalidResolutionError(
            f"{action.value} is not allowed for {label} (allowed: {choices})"
        )


def parse_result(payload: Any) -> ReconciliationResult:
    """Parse a check-duplicate response body into a ReconciliationResult."""
    try:
        return ReconciliationResult.model_validate(payload)
    except ValidationError as exc:
        raise ApiError("Malformed classification response", details=exc.errors()) from exc


def _pick_target(book_data: BookData, candidates: Sequence[CatalogEntry]) -> CatalogEntry:
    for entry in candidates:
        if not diff_book_fields(book_data, entry.book):
            return entry
    return candidates[0]


def _comparable(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def _pricing_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return float(value)
