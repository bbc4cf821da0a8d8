"""Database queries for the reference catalog service."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.core.errors import CatalogNotFoundError
from bookrecon.db.models import (
    BookModel,
    PricingModel,
    PublisherModel,
    QuotationItemModel,
    QuotationModel,
)
from bookrecon.models import BookData, BookRecord, PricingRecord
from bookrecon.quotation.models import Quotation, QuotationItem
from bookrecon.reconciliation.classifier import CatalogEntry


def parse_id(raw: str | UUID, kind: str = "Book") -> UUID:
    """Path ids are UUIDs; anything else cannot exist."""
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except ValueError:
        raise CatalogNotFoundError(f"{kind} {raw} not found") from None


def source_key(source: str) -> str:
    return " ".join(source.split()).casefold()


# ----------------------------------------------------------------------
# Books
# ----------------------------------------------------------------------


async def find_candidates(session: AsyncSession, book_data: BookData) -> list[CatalogEntry]:
    """Books sharing the submission's normalized identifier, oldest first."""
    if book_data.isbn:
        condition = BookModel.isbn == book_data.isbn
    else:
        condition = BookModel.other_code == book_data.other_code

    stmt = (
        select(BookModel, PublisherModel.name)
        .outerjoin(PublisherModel, BookModel.publisher_id == PublisherModel.id)
        .where(condition)
        .order_by(BookModel.created_at.asc(), BookModel.id.asc())
    )
    rows = (await session.execute(stmt)).all()
    if not rows:
        return []

    pricing_by_book = await load_pricing(session, [row.BookModel.id for row in rows])
    return [
        CatalogEntry(
            book=to_book_record(row.BookModel, row.name),
            pricing=pricing_by_book.get(row.BookModel.id, []),
        )
        for row in rows
    ]


async def get_book_model(session: AsyncSession, book_id: str | UUID) -> BookModel:
    book = await session.get(BookModel, parse_id(book_id))
    if book is None:
        raise CatalogNotFoundError(f"Book {book_id} not found")
    return book


async def get_book(session: AsyncSession, book_id: str | UUID) -> BookRecord:
    book = await get_book_model(session, book_id)
    return to_book_record(book, await publisher_name(session, book.publisher_id))


async def list_pricing(session: AsyncSession, book_id: UUID) -> list[PricingRecord]:
    pricing_by_book = await load_pricing(session, [book_id])
    return pricing_by_book.get(book_id, [])


async def get_pricing_model(session: AsyncSession, pricing_id: str | UUID) -> PricingModel:
    pricing = await session.get(PricingModel, parse_id(pricing_id, "Pricing"))
    if pricing is None:
        raise CatalogNotFoundError(f"Pricing {pricing_id} not found")
    return pricing


async def find_pricing_by_source(
    session: AsyncSession, book_id: UUID, source: str
) -> PricingModel | None:
    stmt = select(PricingModel).where(
        PricingModel.book_id == book_id,
        PricingModel.source_key == source_key(source),
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def publisher_name(session: AsyncSession, publisher_id: UUID | None) -> str | None:
    if publisher_id is None:
        return None
    publisher = await session.get(PublisherModel, publisher_id)
    return publisher.name if publisher else None


async def get_or_create_publisher(session: AsyncSession, name: str) -> PublisherModel | None:
    """Case-insensitive publisher lookup; a blank name means no publisher."""
    name = " ".join((name or "").split())
    if not name:
        return None

    key = name.casefold()
    stmt = select(PublisherModel).where(PublisherModel.name_key == key)
    publisher = (await session.execute(stmt)).scalar_one_or_none()
    if publisher is None:
        publisher = PublisherModel(name=name, name_key=key)
        session.add(publisher)
        await session.flush()
    return publisher


async def book_suggestions(session: AsyncSession, query: str, limit: int = 10) -> list[str]:
    pattern = f"%{query.strip().lower()}%"
    stmt = (
        select(BookModel.title)
        .where(func.lower(BookModel.title).like(pattern))
        .distinct()
        .order_by(BookModel.title)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars())


async def publisher_suggestions(session: AsyncSession, query: str, limit: int = 10) -> list[str]:
    pattern = f"%{query.strip().casefold()}%"
    stmt = (
        select(PublisherModel.name)
        .where(PublisherModel.name_key.like(pattern))
        .order_by(PublisherModel.name)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars())


async def load_books(
    session: AsyncSession, book_ids: Sequence[UUID]
) -> dict[UUID, tuple[BookModel, str | None]]:
    """Books with their publisher names, keyed by id."""
    if not book_ids:
        return {}
    stmt = (
        select(BookModel, PublisherModel.name)
        .outerjoin(PublisherModel, BookModel.publisher_id == PublisherModel.id)
        .where(BookModel.id.in_(book_ids))
    )
    rows = (await session.execute(stmt)).all()
    return {row.BookModel.id: (row.BookModel, row.name) for row in rows}


async def load_pricing(
    session: AsyncSession, book_ids: Sequence[UUID]
) -> dict[UUID, list[PricingRecord]]:
    if not book_ids:
        return {}

    stmt = (
        select(PricingModel)
        .where(PricingModel.book_id.in_(book_ids))
        .order_by(PricingModel.last_updated.asc())
    )
    pricing_by_book: dict[UUID, list[PricingRecord]] = defaultdict(list)
    for pricing in (await session.execute(stmt)).scalars():
        pricing_by_book[pricing.book_id].append(to_pricing_record(pricing))
    return pricing_by_book


# ----------------------------------------------------------------------
# Quotations
# ----------------------------------------------------------------------


async def get_quotation_model(session: AsyncSession, quotation_id: str | UUID) -> QuotationModel:
    quotation = await session.get(QuotationModel, parse_id(quotation_id, "Quotation"))
    if quotation is None:
        raise CatalogNotFoundError(f"Quotation {quotation_id} not found")
    return quotation


async def fetch_quotation(session: AsyncSession, quotation_id: str | UUID) -> Quotation:
    quotation = await get_quotation_model(session, quotation_id)
    items = await _load_items(session, [quotation.id])
    return to_quotation(quotation, items.get(quotation.id, []))


async def fetch_quotations(session: AsyncSession) -> list[Quotation]:
    stmt = select(QuotationModel).order_by(QuotationModel.created_at.desc())
    quotations = list((await session.execute(stmt)).scalars())
    items = await _load_items(session, [q.id for q in quotations])
    return [to_quotation(q, items.get(q.id, [])) for q in quotations]


async def _load_items(
    session: AsyncSession, quotation_ids: Sequence[UUID]
) -> dict[UUID, list[QuotationItem]]:
    if not quotation_ids:
        return {}

    stmt = (
        select(QuotationItemModel, BookModel, PublisherModel.name)
        .join(BookModel, BookModel.id == QuotationItemModel.book_id)
        .outerjoin(PublisherModel, BookModel.publisher_id == PublisherModel.id)
        .where(QuotationItemModel.quotation_id.in_(quotation_ids))
        .order_by(QuotationItemModel.quotation_id, QuotationItemModel.position)
    )
    items_by_quotation: dict[UUID, list[QuotationItem]] = defaultdict(list)
    for row in (await session.execute(stmt)).all():
        item = row.QuotationItemModel
        items_by_quotation[item.quotation_id].append(
            QuotationItem(
                book=str(item.book_id),
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                total_price=item.total_price,
                title=row.BookModel.title,
                isbn=row.BookModel.isbn or row.BookModel.other_code,
                publisher_name=row.name,
            )
        )
    return items_by_quotation


# ----------------------------------------------------------------------
# Model -> record conversion
# ----------------------------------------------------------------------


def to_book_record(model: BookModel, publisher: str | None = None) -> BookRecord:
    return BookRecord(
        id=str(model.id),
        title=model.title,
        author=model.author,
        year=model.year,
        publisher_name=publisher,
        isbn=model.isbn,
        other_code=model.other_code,
        edition=model.edition,
        binding_type=model.binding_type,
        classification=model.classification,
        remarks=model.remarks,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def to_pricing_record(model: PricingModel) -> PricingRecord:
    return PricingRecord(
        id=str(model.id),
        source=model.source,
        rate=model.rate,
        discount=model.discount,
        currency=model.currency,
        last_updated=model.last_updated,
    )


def to_quotation(model: QuotationModel, items: list[QuotationItem]) -> Quotation:
    return Quotation(
        id=str(model.id),
        quotation_id=model.quotation_id,
        customer=model.customer,
        items=items,
        sub_total=model.sub_total,
        total_discount=model.total_discount,
        grand_total=model.grand_total,
        status=model.status,
        valid_until=model.valid_until,
        general_discount=model.general_discount,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
