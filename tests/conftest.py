"""Pytest configuration and fixtures for bookrecon tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookrecon.config import reset_config
from bookrecon.db.models import Base
from bookrecon.models import BookRecord, BookSubmission, PricingRecord
from bookrecon.reconciliation.classifier import CatalogEntry

GATSBY_ISBN = "9780743273565"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("API_BASE_URL", "http://catalog.test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("QUOTATION_TAX_RATE", raising=False)
    monkeypatch.delenv("JSON_LOGS", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def book_fields() -> dict:
    """Form values for a valid ISBN book."""
    return {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "year": 2004,
        "publisher_name": "Scribner",
        "isbn": "978-0-7432-7356-5",
        "edition": "Reissue",
        "binding_type": "Paperback",
        "classification": "Fiction",
    }


@pytest.fixture
def pricing_fields() -> dict:
    return {"source": "Ingram", "rate": 15.99, "discount": 10, "currency": "usd"}


@pytest.fixture
def submission(book_fields, pricing_fields) -> BookSubmission:
    return BookSubmission.model_validate(
        {"bookData": book_fields, "pricingData": pricing_fields, "publisherData": {"name": "Scribner"}}
    )


@pytest.fixture
def existing_book() -> BookRecord:
    """Catalog copy of the sample submission's book."""
    return BookRecord(
        id="book-1",
        title="The Great Gatsby",
        author="F. Scott Fitzgerald",
        year=2004,
        publisher_name="Scribner",
        isbn=GATSBY_ISBN,
        edition="Reissue",
        binding_type="Paperback",
        classification="Fiction",
    )


@pytest.fixture
def ingram_pricing() -> PricingRecord:
    return PricingRecord(id="price-1", source="Ingram", rate=15.99, discount=10, currency="USD")


@pytest.fixture
def catalog_entry(existing_book, ingram_pricing) -> CatalogEntry:
    return CatalogEntry(book=existing_book, pricing=[ingram_pricing])


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine) -> AsyncSession:
    SessionLocal = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
