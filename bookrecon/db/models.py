"""SQLAlchemy async database models for the reference catalog service."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PublisherModel(Base):
    """Publisher, created on demand when a book names one."""

    __tablename__ = "publishers"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    name_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)  # casefolded name
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class BookModel(Base):
    """Catalog book. Holds exactly one of isbn / other_code.

    Identifiers are not unique: KEEP_BOTH deliberately stores a second book
    under an identifier that already exists.
    """

    __tablename__ = "books"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer)
    publisher_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("publishers.id", ondelete="SET NULL"), index=True
    )

    # Normalized identifiers
    isbn: Mapped[str | None] = mapped_column(Text, index=True)
    other_code: Mapped[str | None] = mapped_column(Text, index=True)

    edition: Mapped[str | None] = mapped_column(Text)
    binding_type: Mapped[str | None] = mapped_column(Text)
    classification: Mapped[str | None] = mapped_column(Text)
    remarks: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "(isbn IS NULL) <> (other_code IS NULL)",
            name="check_exactly_one_identifier",
        ),
        Index("idx_books_title", "title"),
    )


class PricingModel(Base):
    """One source's price for a book."""

    __tablename__ = "pricing"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    book_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(Text, nullable=False)
    source_key: Mapped[str] = mapped_column(Text, nullable=False)  # casefolded source
    rate: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="USD")
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("rate >= 0", name="check_rate_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="check_discount_range"),
        # One pricing row per source per book
        UniqueConstraint("book_id", "source_key", name="uq_pricing_book_source"),
    )


class QuotationModel(Base):
    """Saved quotation header; totals are stored as computed at save time."""

    __tablename__ = "quotations"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    quotation_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    customer: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="Draft")
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sub_total: Mapped[float] = mapped_column(Float, nullable=False)
    total_discount: Mapped[float] = mapped_column(Float, nullable=False)
    grand_total: Mapped[float] = mapped_column(Float, nullable=False)
    general_discount: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('Draft', 'Sent', 'Accepted', 'Rejected')",
            name="check_quotation_status",
        ),
        CheckConstraint(
            "general_discount >= 0 AND general_discount <= 100", name="check_general_discount_range"
        ),
    )


class QuotationItemModel(Base):
    """One line of a quotation, kept in display order by ``position``."""

    __tablename__ = "quotation_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    quotation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    book_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("books.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_price: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="check_unit_price_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="check_item_discount_range"),
        UniqueConstraint("quotation_id", "position", name="uq_quotation_item_position"),
    )
