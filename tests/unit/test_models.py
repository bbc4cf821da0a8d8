"""Unit tests for catalog and reconciliation models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bookrecon.models import BookData, BookSubmission, PricingData, PricingRecord, PricingStatistics
from bookrecon.reconciliation.models import (
    BookStatus,
    PricingStatus,
    ReconciliationResult,
    ResolutionAction,
    ResolutionRequest,
)


class TestBookData:
    def test_isbn_is_normalized(self, book_fields):
        book = BookData(**book_fields)
        assert book.isbn == "9780743273565"
        assert book.identifier == "9780743273565"

    def test_invalid_isbn_rejected(self, book_fields):
        book_fields["isbn"] = "0743273568"
        with pytest.raises(ValidationError, match="not a valid ISBN"):
            BookData(**book_fields)

    def test_other_code_instead_of_isbn(self, book_fields):
        book_fields["isbn"] = ""
        book_fields["other_code"] = " lib-42 "
        book = BookData(**book_fields)
        assert book.isbn is None
        assert book.identifier == "LIB-42"

    def test_both_identifiers_rejected(self, book_fields):
        book_fields["other_code"] = "LIB-42"
        with pytest.raises(ValidationError, match="mutually exclusive"):
            BookData(**book_fields)

    def test_neither_identifier_rejected(self, book_fields):
        book_fields["isbn"] = None
        with pytest.raises(ValidationError, match="either isbn or other_code"):
            BookData(**book_fields)

    def test_blank_required_field_rejected(self, book_fields):
        book_fields["title"] = "   "
        with pytest.raises(ValidationError, match="must not be blank"):
            BookData(**book_fields)


class TestPricingData:
    def test_currency_uppercased(self):
        assert PricingData(source="Ingram", rate=10, currency="eur").currency == "EUR"

    @pytest.mark.parametrize("field,value", [("rate", -1), ("discount", -5), ("discount", 101)])
    def test_out_of_range_values_rejected(self, field, value):
        data = {"source": "Ingram", "rate": 10, "discount": 0}
        data[field] = value
        with pytest.raises(ValidationError):
            PricingData(**data)


class TestPricingStatistics:
    def test_empty_pricing_is_all_zero(self):
        stats = PricingStatistics.from_pricing([])
        assert stats.total_sources == 0
        assert stats.min_rate == 0

    def test_aggregates(self):
        rows = [
            PricingRecord(id="a", source="A", rate=10, discount=0, currency="USD"),
            PricingRecord(id="b", source="B", rate=20, discount=10, currency="USD"),
        ]
        stats = PricingStatistics.from_pricing(rows)
        assert stats.total_sources == 2
        assert stats.average_rate == 15
        assert stats.min_rate == 10
        assert stats.max_rate == 20
        assert stats.average_discount == 5
        assert stats.model_dump(by_alias=True)["averageRate"] == 15


class TestReconciliationResult:
    def test_parses_wire_payload(self):
        result = ReconciliationResult.model_validate(
            {
                "bookStatus": "DUPLICATE",
                "pricingStatus": "UPDATE_PRICE",
                "message": "differs",
                "bookId": "b1",
                "pricingId": "p1",
                "differences": [{"field": "rate", "existing": 10, "new": 12}],
                "conflictFields": None,
            }
        )
        assert result.book_status == BookStatus.DUPLICATE
        assert result.pricing_status == PricingStatus.UPDATE_PRICE
        assert result.differences[0].field == "rate"

    def test_accepts_legacy_spellings(self):
        result = ReconciliationResult.model_validate(
            {"status": "DUPLICATE", "pricingAction": "UPDATE_POSSIBLE", "bookId": "b1"}
        )
        assert result.pricing_status == PricingStatus.UPDATE_PRICE

    def test_duplicate_requires_pricing_status(self):
        with pytest.raises(ValidationError, match="missing its pricing status"):
            ReconciliationResult.model_validate({"bookStatus": "DUPLICATE", "bookId": "b1"})

    def test_conflict_fields_only_on_conflicts(self):
        with pytest.raises(ValidationError, match="only valid for conflicts"):
            ReconciliationResult.model_validate(
                {"bookStatus": "NEW", "conflictFields": {"title": {"old": "a", "new": "b"}}}
            )

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            ReconciliationResult.model_validate({"bookStatus": "MAYBE"})

    def test_to_wire_uses_camel_case(self):
        result = ReconciliationResult(book_status=BookStatus.NEW, message="new")
        assert result.to_wire() == {
            "bookStatus": "NEW",
            "message": "new",
            "conflictFields": {},
            "differences": [],
        }


def test_resolution_request_wire_shape(submission: BookSubmission):
    result = ReconciliationResult(
        book_status=BookStatus.DUPLICATE,
        pricing_status=PricingStatus.ADD_PRICE,
        book_id="b1",
    )
    wire = ResolutionRequest.for_result(submission, result, ResolutionAction.ADD_PRICE).to_wire()

    assert wire["status"] == "DUPLICATE"
    assert wire["pricingStatus"] == "ADD_PRICE"
    assert wire["pricingAction"] == "ADD_PRICE"
    assert wire["bookId"] == "b1"
    assert "pricingId" not in wire
    assert wire["bookData"]["isbn"] == "9780743273565"
