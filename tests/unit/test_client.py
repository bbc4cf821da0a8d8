"""Unit tests for the catalog API client, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from bookrecon.api.client import CatalogApiClient
from bookrecon.core.errors import ApiError
from bookrecon.core.session import ApiSession
from bookrecon.quotation.models import QuotationPayload
from bookrecon.reconciliation.models import BookStatus, PricingStatus


def _client(handler, session: ApiSession | None = None) -> CatalogApiClient:
    return CatalogApiClient(session=session, transport=httpx.MockTransport(handler))


class TestCheckDuplicate:
    @pytest.mark.asyncio
    async def test_posts_wire_payload(self, submission):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"bookStatus": "NEW", "message": "new"})

        async with _client(handler) as client:
            result = await client.check_duplicate(submission)

        assert seen["url"] == "http://catalog.test/api/books/check-duplicate"
        assert seen["body"]["bookData"]["isbn"] == "9780743273565"
        assert seen["body"]["pricingData"]["currency"] == "USD"
        assert result.book_status == BookStatus.NEW

    @pytest.mark.asyncio
    async def test_409_is_a_classification_result(self, submission):
        def handler(request):
            return httpx.Response(
                409,
                json={
                    "bookStatus": "CONFLICT",
                    "message": "differs",
                    "bookId": "b1",
                    "conflictFields": {"title": {"old": "Gatsby", "new": "The Great Gatsby"}},
                },
            )

        async with _client(handler) as client:
            result = await client.check_duplicate(submission)

        assert result.book_status == BookStatus.CONFLICT
        assert result.conflict_fields["title"].old == "Gatsby"

    @pytest.mark.asyncio
    async def test_legacy_update_possible(self, submission):
        def handler(request):
            return httpx.Response(
                200,
                json={"status": "DUPLICATE", "pricingAction": "UPDATE_POSSIBLE", "bookId": "b1", "pricingId": "p1"},
            )

        async with _client(handler) as client:
            result = await client.check_duplicate(submission)

        assert result.pricing_status == PricingStatus.UPDATE_PRICE


class TestErrors:
    @pytest.mark.asyncio
    async def test_server_message_is_surfaced(self, submission):
        def handler(request):
            return httpx.Response(500, json={"message": "database unavailable"})

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.check_duplicate(submission)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "database unavailable"
        assert str(exc_info.value) == "database unavailable (HTTP 500)"

    @pytest.mark.asyncio
    async def test_fastapi_detail_is_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "At least one book id is required"})

        async with _client(handler) as client:
            with pytest.raises(ApiError, match="At least one book id is required"):
                await client.quotation_preview([])

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.book_suggestions("gat")

        assert exc_info.value.status_code is None
        assert exc_info.value.message == "No response received from server."

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(ApiError, match="timed out"):
                await client.list_quotations()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        async with _client(handler) as client:
            with pytest.raises(ApiError, match="non-JSON"):
                await client.publisher_suggestions("scr")


class TestOtherEndpoints:
    @pytest.mark.asyncio
    async def test_bearer_token_sent(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"success": True, "suggestions": ["Scribner"]})

        session = ApiSession(base_url="http://catalog.test", auth_token="tok-123")
        async with _client(handler, session) as client:
            assert await client.publisher_suggestions("scr") == ["Scribner"]

        assert seen["auth"] == "Bearer tok-123"

    @pytest.mark.asyncio
    async def test_preview_sends_repeated_ids(self):
        seen = {}

        def handler(request):
            seen["ids"] = request.url.params.get_list("id")
            return httpx.Response(
                200,
                json={"success": True, "data": [{"bookId": "b1", "title": "Gatsby", "lowestPrice": 12.5}]},
            )

        async with _client(handler) as client:
            books = await client.quotation_preview(["b1", "b2"])

        assert seen["ids"] == ["b1", "b2"]
        assert books[0].lowest_price == 12.5

    @pytest.mark.asyncio
    async def test_create_quotation(self):
        payload = QuotationPayload.model_validate(
            {
                "customer": "Acme",
                "items": [{"book": "b1", "quantity": 1, "unitPrice": 10, "discount": 0, "totalPrice": 10}],
                "subTotal": 10,
                "totalDiscount": 0,
                "grandTotal": 10.5,
                "validUntil": "2026-11-18T00:00:00Z",
            }
        )

        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={"success": True, "quotation": {**body, "id": "q1", "quotationId": "QUO-1"}},
            )

        async with _client(handler) as client:
            quotation = await client.create_quotation(payload)

        assert quotation.id == "q1"
        assert quotation.grand_total == 10.5
        assert quotation.items[0].unit_price == 10

    @pytest.mark.asyncio
    async def test_malformed_quotation_response(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "quotation": {"id": "q1"}})

        async with _client(handler) as client:
            with pytest.raises(ApiError, match="Malformed Quotation"):
                await client.get_quotation("q1")
