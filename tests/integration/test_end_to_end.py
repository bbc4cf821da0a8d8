"""End-to-end tests: CatalogApiClient -> FastAPI app -> SQLite catalog.

The app runs in-process through httpx.ASGITransport with its database
dependency bound to an in-memory engine, so every request commits for real.
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from bookrecon.api.client import CatalogApiClient
from bookrecon.core.errors import ApiError
from bookrecon.core.session import ApiSession
from bookrecon.db.connection import get_db
from bookrecon.models import BookUpdate
from bookrecon.quotation.draft import QuotationDraft
from bookrecon.reconciliation.models import (
    BookStatus,
    PricingStatus,
    ResolutionAction,
    ResolutionRequest,
)
from bookrecon.reconciliation.workflow import BookInsertionFlow, build_submission
from bookrecon.web.app import app


@pytest_asyncio.fixture()
async def client(db_engine):
    SessionLocal = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with SessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    api = CatalogApiClient(ApiSession.anonymous("http://catalog.test"), transport=transport)
    try:
        yield api
    finally:
        await api.close()
        app.dependency_overrides.clear()


async def _insert(client, book_fields, pricing_fields):
    flow = BookInsertionFlow(client)
    result = await flow.check_form(book_fields, pricing_fields)
    assert result.book_status == BookStatus.NEW
    return await flow.choose(ResolutionAction.INSERT)


@pytest.mark.asyncio
async def test_insert_then_resubmit_is_duplicate(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)
    assert inserted.book_id and inserted.pricing_id

    # Same book typed with different separators, spacing and case
    book_fields["isbn"] = "978 0743273565"
    book_fields["title"] = "  the great GATSBY "
    result = await client.check_duplicate(build_submission(book_fields, pricing_fields))

    assert result.book_status == BookStatus.DUPLICATE
    assert result.pricing_status == PricingStatus.NO_CHANGE
    assert result.book_id == inserted.book_id
    assert result.pricing_id == inserted.pricing_id


@pytest.mark.asyncio
async def test_repeated_insert_is_refused(client, book_fields, pricing_fields):
    submission = build_submission(book_fields, pricing_fields)
    result = await client.check_duplicate(submission)
    request = ResolutionRequest.for_result(submission, result, ResolutionAction.INSERT)

    await client.create_book(request)
    with pytest.raises(ApiError) as exc_info:
        await client.create_book(request)

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["current"]["bookStatus"] == "DUPLICATE"


@pytest.mark.asyncio
async def test_add_price_from_new_source(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)

    flow = BookInsertionFlow(client)
    result = await flow.check_form(
        book_fields, {"source": "Baker & Taylor", "rate": 14.5, "discount": 5, "currency": "USD"}
    )
    assert result.pricing_status == PricingStatus.ADD_PRICE
    assert flow.actions() == [ResolutionAction.ADD_PRICE]

    response = await flow.choose(ResolutionAction.ADD_PRICE)
    assert response.book_id == inserted.book_id

    detail = await client.get_book_pricing(inserted.book_id)
    assert sorted(p.source for p in detail.pricing) == ["Baker & Taylor", "Ingram"]
    assert detail.statistics.total_sources == 2
    assert detail.statistics.min_rate == 14.5


@pytest.mark.asyncio
async def test_repeated_add_price_is_stale(client, book_fields, pricing_fields):
    await _insert(client, book_fields, pricing_fields)
    submission = build_submission(book_fields, {"source": "Amazon", "rate": 12})
    result = await client.check_duplicate(submission)
    request = ResolutionRequest.for_result(submission, result, ResolutionAction.ADD_PRICE)

    await client.create_book(request)
    with pytest.raises(ApiError) as exc_info:
        await client.create_book(request)

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["current"]["pricingStatus"] == "NO_CHANGE"


@pytest.mark.asyncio
async def test_update_price(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)

    pricing_fields["rate"] = 13.25
    flow = BookInsertionFlow(client)
    result = await flow.check_form(book_fields, pricing_fields)
    assert result.pricing_status == PricingStatus.UPDATE_PRICE
    assert [d.field for d in result.differences] == ["rate"]

    response = await flow.choose(ResolutionAction.UPDATE_PRICE)
    assert response.pricing_id == inserted.pricing_id

    detail = await client.get_book_pricing(inserted.book_id)
    assert [p.rate for p in detail.pricing] == [13.25]


@pytest.mark.asyncio
async def test_illegal_action_is_400(client, book_fields, pricing_fields):
    submission = build_submission(book_fields, pricing_fields)
    result = await client.check_duplicate(submission)
    request = ResolutionRequest.for_result(submission, result, ResolutionAction.KEEP_NEW)

    with pytest.raises(ApiError) as exc_info:
        await client.create_book(request)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_conflict_keep_new_overwrites_conflicting_fields(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)

    book_fields["binding_type"] = "Hardcover"
    flow = BookInsertionFlow(client)
    result = await flow.check_form(book_fields, pricing_fields)
    assert result.book_status == BookStatus.CONFLICT
    assert result.conflict_fields["binding_type"].old == "Paperback"

    await flow.choose(ResolutionAction.KEEP_NEW)

    detail = await client.get_book_pricing(inserted.book_id)
    assert detail.book.binding_type == "Hardcover"
    assert detail.book.title == "The Great Gatsby"


@pytest.mark.asyncio
async def test_author_conflict_keep_both(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)

    book_fields["author"] = "Someone Else"
    flow = BookInsertionFlow(client)
    result = await flow.check_form(book_fields, pricing_fields)
    assert result.book_status == BookStatus.AUTHOR_CONFLICT
    assert set(flow.actions()) == {
        ResolutionAction.KEEP_NEW,
        ResolutionAction.KEEP_OLD,
        ResolutionAction.KEEP_BOTH,
    }

    response = await flow.choose(ResolutionAction.KEEP_BOTH)
    assert response.book_id != inserted.book_id

    # The matching copy is preferred over the older conflicting one
    again = await client.check_duplicate(build_submission(book_fields, pricing_fields))
    assert again.book_status == BookStatus.DUPLICATE
    assert again.book_id == response.book_id


@pytest.mark.asyncio
async def test_direct_edit_and_suggestions(client, book_fields, pricing_fields):
    inserted = await _insert(client, book_fields, pricing_fields)

    book_fields["remarks"] = "Signed copy"
    update = BookUpdate.model_validate(
        {"bookData": book_fields, "pricingData": {"source": "ingram", "rate": 11}}
    )
    body = await client.update_book(inserted.book_id, update)
    assert body["book"]["remarks"] == "Signed copy"
    assert body["pricing"]["id"] == inserted.pricing_id

    assert await client.book_suggestions("gats") == ["The Great Gatsby"]
    assert await client.publisher_suggestions("SCRIB") == ["Scribner"]


@pytest.mark.asyncio
async def test_missing_book_is_404(client):
    with pytest.raises(ApiError) as exc_info:
        await client.get_book_pricing("not-a-book")
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_quotation_round_trip(client, book_fields, pricing_fields):
    first = await _insert(client, book_fields, pricing_fields)
    second = await _insert(
        client,
        {**book_fields, "title": "Tender Is the Night", "isbn": "9780684801544"},
        {"source": "Ingram", "rate": 17, "discount": 0, "currency": "USD"},
    )
    cheaper = build_submission(book_fields, {"source": "Amazon", "rate": 12.5})
    result = await client.check_duplicate(cheaper)
    await client.create_book(ResolutionRequest.for_result(cheaper, result, ResolutionAction.ADD_PRICE))

    previews = await client.quotation_preview([first.book_id, second.book_id])
    assert [p.lowest_price for p in previews] == [12.5, 17]

    draft = QuotationDraft.from_preview(previews, customer="City Library")
    draft.set_quantity(first.book_id, "3")
    draft.set_item_discount(second.book_id, "10")
    draft.set_general_discount("5")
    payload = draft.to_payload()

    saved = await client.create_quotation(payload)
    assert saved.quotation_id.startswith("QUO-")
    assert (saved.sub_total, saved.total_discount, saved.grand_total) == (
        payload.sub_total,
        payload.total_discount,
        payload.grand_total,
    )
    assert [item.title for item in saved.items] == ["The Great Gatsby", "Tender Is the Night"]

    edit = QuotationDraft.from_quotation(await client.get_quotation(saved.id))
    edit.remove_books([second.book_id])
    edit.set_status("Sent")
    updated = await client.update_quotation(saved.id, edit.to_payload())

    assert updated.status.value == "Sent"
    assert len(updated.items) == 1
    assert updated.general_discount == 5
    assert [q.id for q in await client.list_quotations()] == [saved.id]
