"""Unit tests for the resolution executor and its in-flight guard."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from bookrecon.api.client import CatalogApiClient
from bookrecon.core.errors import ApiError, InvalidResolutionError, ResolutionInProgressError
from bookrecon.reconciliation.executor import ResolutionExecutor, target_key
from bookrecon.reconciliation.models import (
    BookStatus,
    PricingStatus,
    ReconciliationResult,
    ResolutionAction,
)


@pytest.fixture
def add_price_result() -> ReconciliationResult:
    return ReconciliationResult(
        book_status=BookStatus.DUPLICATE,
        pricing_status=PricingStatus.ADD_PRICE,
        book_id="book-1",
    )


def test_target_key_uses_book_id_or_identifier(submission, add_price_result):
    assert target_key(submission, add_price_result) == "book:book-1"
    new = ReconciliationResult(book_status=BookStatus.NEW)
    assert target_key(submission, new) == "new:9780743273565"


def test_available_actions_in_stable_order():
    executor = ResolutionExecutor(client=None)
    result = ReconciliationResult(book_status=BookStatus.CONFLICT, book_id="b1")
    assert executor.available_actions(result) == [
        ResolutionAction.KEEP_NEW,
        ResolutionAction.KEEP_OLD,
        ResolutionAction.KEEP_BOTH,
    ]


@pytest.mark.asyncio
async def test_sends_classification_context(submission, add_price_result):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={"success": True, "message": "added", "action": "ADD_PRICE", "bookId": "book-1", "pricingId": "p9"},
        )

    async with CatalogApiClient(transport=httpx.MockTransport(handler)) as client:
        response = await ResolutionExecutor(client).resolve(
            submission, add_price_result, ResolutionAction.ADD_PRICE
        )

    assert response.pricing_id == "p9"
    assert bodies[0]["status"] == "DUPLICATE"
    assert bodies[0]["pricingAction"] == "ADD_PRICE"
    assert bodies[0]["bookId"] == "book-1"


@pytest.mark.asyncio
async def test_disallowed_action_never_sent(submission, add_price_result):
    def handler(request):
        raise AssertionError("request must not be sent")

    async with CatalogApiClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(InvalidResolutionError):
            await ResolutionExecutor(client).resolve(
                submission, add_price_result, ResolutionAction.INSERT
            )


@pytest.mark.asyncio
async def test_second_add_price_blocked_while_first_in_flight(submission, add_price_result):
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def handler(request):
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()
        return httpx.Response(
            200, json={"success": True, "action": "ADD_PRICE", "bookId": "book-1", "pricingId": "p9"}
        )

    async with CatalogApiClient(transport=httpx.MockTransport(handler)) as client:
        executor = ResolutionExecutor(client)
        first = asyncio.create_task(
            executor.resolve(submission, add_price_result, ResolutionAction.ADD_PRICE)
        )
        await started.wait()
        assert executor.is_busy(submission, add_price_result)

        with pytest.raises(ResolutionInProgressError):
            await executor.resolve(submission, add_price_result, ResolutionAction.ADD_PRICE)

        release.set()
        await first

    assert calls == 1
    assert not executor.is_busy(submission, add_price_result)


@pytest.mark.asyncio
async def test_guard_released_after_failure(submission, add_price_result):
    def handler(request):
        return httpx.Response(409, json={"success": False, "message": "stale"})

    async with CatalogApiClient(transport=httpx.MockTransport(handler)) as client:
        executor = ResolutionExecutor(client)
        with pytest.raises(ApiError, match="stale"):
            await executor.resolve(submission, add_price_result, ResolutionAction.ADD_PRICE)

        assert not executor.is_busy(submission, add_price_result)
