"""Catalog business operations: classification, resolution, edits and quotations.

The service is the authority for resolutions. It re-classifies every
resolution request against the current catalog and refuses requests whose
classification context no longer holds, so repeating an INSERT or ADD_PRICE
cannot create a second record. Concurrent resolutions for one identifier are
serialized by ``resolution_lock``; a race the lock cannot see (another worker
process, a shared publisher or pricing source) ends in an IntegrityError,
which the web app answers with 409.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import UUID, uuid4
from weakref import WeakValueDictionary

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.catalog import repository
from bookrecon.config import get_config
from bookrecon.core.errors import CatalogNotFoundError, StaleResolutionError
from bookrecon.db.models import (
    BookModel,
    PricingModel,
    QuotationItemModel,
    QuotationModel,
)
from bookrecon.models import (
    BookData,
    BookPricingDetail,
    BookSubmission,
    BookUpdate,
    PricingData,
    PricingRecord,
    PricingStatistics,
)
from bookrecon.quotation.calculator import LineInput, calculate, to_decimal
from bookrecon.quotation.models import PreviewBook, Quotation, QuotationPayload
from bookrecon.reconciliation.classifier import check_action, classify
from bookrecon.reconciliation.models import (
    ReconciliationResult,
    ResolutionAction,
    ResolutionRequest,
    ResolutionResponse,
)

logger = structlog.get_logger()

# Payload totals may drift from the recomputed ones by float rounding only
TOTAL_TOLERANCE = 0.005

# One lock per normalized identifier while a resolution is classified, written and committed
_resolution_locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()


# ----------------------------------------------------------------------
# Classification and resolution
# ----------------------------------------------------------------------


async def check_submission(session: AsyncSession, submission: BookSubmission) -> ReconciliationResult:
    candidates = await repository.find_candidates(session, submission.book_data)
    return classify(submission, candidates)


@asynccontextmanager
async def resolution_lock(book_data: BookData) -> AsyncIterator[None]:
    """Serialize resolutions for one identifier within this process.

    Hold it around ``apply_resolution`` and the commit, so a second request
    for the same book is classified against the first one's result.
    """
    key = book_data.identifier
    lock = _resolution_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _resolution_locks[key] = lock
    async with lock:
        yield


async def apply_resolution(session: AsyncSession, request: ResolutionRequest) -> ResolutionResponse:
    """Perform ``request.action`` if the carried classification is still current.

    Raises:
        StaleResolutionError: the catalog no longer classifies the submission
            the way the request says it does
        InvalidResolutionError: the action is not allowed for the classification
    """
    submission = request.submission()
    current = await check_submission(session, submission)

    carried = (request.status, request.pricing_status, request.book_id, request.pricing_id)
    fresh = (current.book_status, current.pricing_status, current.book_id, current.pricing_id)
    if carried != fresh:
        logger.info(
            "resolution_stale",
            action=request.action.value,
            carried_status=request.status.value,
            current_status=current.book_status.value,
            book_id=current.book_id,
        )
        raise StaleResolutionError(
            "The catalog changed since this book was checked; check it again.",
            current=current,
        )

    check_action(current, request.action)

    action = request.action
    book_id: str | None = current.book_id
    pricing_id: str | None = current.pricing_id

    if action in (ResolutionAction.INSERT, ResolutionAction.KEEP_BOTH):
        book = await _insert_book(session, submission)
        pricing = await _insert_pricing(session, book.id, submission.pricing_data)
        book_id, pricing_id = str(book.id), str(pricing.id)
        message = "Book and pricing inserted."
        if action == ResolutionAction.KEEP_BOTH:
            message = "New book inserted alongside the existing one."
    elif action == ResolutionAction.KEEP_NEW:
        book = await repository.get_book_model(session, current.book_id)
        for name, change in current.conflict_fields.items():
            setattr(book, name, change.new)
        await session.flush()
        updated = ", ".join(current.conflict_fields)
        message = f"Existing book updated: {updated}."
    elif action == ResolutionAction.ADD_PRICE:
        book = await repository.get_book_model(session, current.book_id)
        pricing = await _insert_pricing(session, book.id, submission.pricing_data)
        pricing_id = str(pricing.id)
        message = f"Pricing from '{pricing.source}' added."
    elif action == ResolutionAction.UPDATE_PRICE:
        pricing = await repository.get_pricing_model(session, current.pricing_id)
        _apply_pricing(pricing, submission.pricing_data)
        await session.flush()
        message = f"Pricing from '{pricing.source}' updated."
    elif action in (ResolutionAction.KEEP_OLD, ResolutionAction.IGNORE):
        message = "Submission discarded; catalog unchanged."
    else:
        raise ValueError(f"Unhandled resolution action: {action!r}")

    logger.info(
        "resolution_applied",
        action=action.value,
        book_id=book_id,
        pricing_id=pricing_id,
    )
    return ResolutionResponse(
        success=True,
        message=message,
        action=action,
        book_id=book_id,
        pricing_id=pricing_id,
    )


async def update_book(
    session: AsyncSession, book_id: str, update: BookUpdate
) -> tuple[BookModel, PricingModel | None]:
    """Direct edit: overwrite book fields and upsert the pricing row for its source."""
    book = await repository.get_book_model(session, book_id)
    _apply_book_data(book, update.book_data)

    publisher = await repository.get_or_create_publisher(session, update.book_data.publisher_name)
    book.publisher_id = publisher.id if publisher else None

    pricing = None
    if update.pricing_data is not None:
        pricing = await repository.find_pricing_by_source(session, book.id, update.pricing_data.source)
        if pricing is None:
            pricing = await _insert_pricing(session, book.id, update.pricing_data)
        else:
            _apply_pricing(pricing, update.pricing_data)

    await session.flush()
    logger.info("book_updated", book_id=str(book.id), pricing_id=str(pricing.id) if pricing else None)
    return book, pricing


async def book_pricing_detail(session: AsyncSession, book_id: str) -> BookPricingDetail:
    book = await repository.get_book(session, book_id)
    pricing = await repository.list_pricing(session, UUID(book.id))
    return BookPricingDetail(
        success=True,
        book=book,
        pricing=pricing,
        statistics=PricingStatistics.from_pricing(pricing),
        message="" if pricing else "No pricing recorded for this book.",
    )


async def _insert_book(session: AsyncSession, submission: BookSubmission) -> BookModel:
    publisher = await repository.get_or_create_publisher(session, submission.publisher_name)
    book = BookModel(publisher_id=publisher.id if publisher else None)
    _apply_book_data(book, submission.book_data)
    session.add(book)
    await session.flush()
    return book


async def _insert_pricing(session: AsyncSession, book_id: UUID, data: PricingData) -> PricingModel:
    pricing = PricingModel(book_id=book_id)
    _apply_pricing(pricing, data)
    session.add(pricing)
    await session.flush()
    return pricing


def _apply_book_data(book: BookModel, data: BookData) -> None:
    book.title = data.title
    book.author = data.author
    book.year = data.year
    book.isbn = data.isbn
    book.other_code = data.other_code
    book.edition = data.edition
    book.binding_type = data.binding_type
    book.classification = data.classification
    book.remarks = data.remarks


def _apply_pricing(pricing: PricingModel, data: PricingData) -> None:
    pricing.source = data.source
    pricing.source_key = repository.source_key(data.source)
    pricing.rate = data.rate
    pricing.discount = data.discount
    pricing.currency = data.currency
    pricing.last_updated = datetime.now(timezone.utc)


# ----------------------------------------------------------------------
# Quotations
# ----------------------------------------------------------------------


async def preview_books(session: AsyncSession, book_ids: list[str]) -> list[PreviewBook]:
    """Selected books with their lowest catalog rate, in request order."""
    ids = list(dict.fromkeys(repository.parse_id(book_id) for book_id in book_ids))
    books = await repository.load_books(session, ids)
    missing = [str(book_id) for book_id in ids if book_id not in books]
    if missing:
        raise CatalogNotFoundError(f"Books not found: {', '.join(missing)}")

    pricing_by_book = await repository.load_pricing(session, ids)
    default_currency = get_config().quotation.default_currency
    previews = []
    for book_id in ids:
        book, publisher = books[book_id]
        cheapest = _cheapest(pricing_by_book.get(book_id, []))
        previews.append(
            PreviewBook(
                book_id=str(book.id),
                title=book.title,
                isbn=book.isbn or book.other_code,
                publisher_name=publisher,
                lowest_price=cheapest.rate if cheapest else 0,
                currency=cheapest.currency if cheapest else default_currency,
            )
        )
    return previews


async def create_quotation(session: AsyncSession, payload: QuotationPayload) -> Quotation:
    quotation = QuotationModel(quotation_id=_new_quotation_number())
    await _store_quotation(session, quotation, payload, replace_items=False)
    logger.info("quotation_created", quotation_id=quotation.quotation_id, items=len(payload.items))
    return await repository.fetch_quotation(session, quotation.id)


async def update_quotation(session: AsyncSession, quotation_id: str, payload: QuotationPayload) -> Quotation:
    quotation = await repository.get_quotation_model(session, quotation_id)
    await _store_quotation(session, quotation, payload, replace_items=True)
    logger.info("quotation_updated", quotation_id=quotation.quotation_id, items=len(payload.items))
    return await repository.fetch_quotation(session, quotation.id)


async def _store_quotation(
    session: AsyncSession,
    quotation: QuotationModel,
    payload: QuotationPayload,
    replace_items: bool,
) -> None:
    """Persist ``payload`` with totals recomputed from its items."""
    book_ids = [repository.parse_id(item.book) for item in payload.items]
    books = await repository.load_books(session, book_ids)
    missing = [str(book_id) for book_id in book_ids if book_id not in books]
    if missing:
        raise CatalogNotFoundError(f"Books not found: {', '.join(missing)}")

    summary = calculate(
        [
            LineInput(
                book_id=item.book,
                unit_price=to_decimal(item.unit_price),
                quantity=item.quantity,
                discount_percent=to_decimal(item.discount),
            )
            for item in payload.items
        ],
        general_discount_percent=payload.general_discount,
    )
    _warn_on_drift(payload, float(summary.subtotal), float(summary.total_discount), float(summary.grand_total))

    quotation.customer = payload.customer
    quotation.status = payload.status.value
    quotation.valid_until = payload.valid_until
    quotation.general_discount = payload.general_discount
    quotation.sub_total = float(summary.subtotal)
    quotation.total_discount = float(summary.total_discount)
    quotation.grand_total = float(summary.grand_total)
    session.add(quotation)
    await session.flush()

    if replace_items:
        await session.execute(
            delete(QuotationItemModel).where(QuotationItemModel.quotation_id == quotation.id)
        )

    for position, (item, line) in enumerate(zip(payload.items, summary.lines)):
        session.add(
            QuotationItemModel(
                quotation_id=quotation.id,
                position=position,
                book_id=book_ids[position],
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                total_price=float(line.line_total),
            )
        )
    await session.flush()


def _warn_on_drift(payload: QuotationPayload, sub_total: float, total_discount: float, grand_total: float) -> None:
    sent = (payload.sub_total, payload.total_discount, payload.grand_total)
    computed = (sub_total, total_discount, grand_total)
    if any(abs(a - b) > TOTAL_TOLERANCE for a, b in zip(sent, computed)):
        logger.warning(
            "quotation_totals_recomputed",
            sent=sent,
            computed=computed,
            customer=payload.customer,
        )


def _cheapest(pricing: list[PricingRecord]) -> PricingRecord | None:
    if not pricing:
        return None
    return min(pricing, key=lambda p: p.rate)


def _new_quotation_number() -> str:
    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"QUO-{today}-{uuid4().hex[:6].upper()}"
