"""Engine and session lifecycle for the reference catalog database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from bookrecon.config import get_config
from bookrecon.db.models import Base

logger = structlog.get_logger()

_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def _is_sqlite(url: str) -> bool:
    return url.lower().startswith("sqlite")


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE rules unless foreign keys are switched on per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine() -> AsyncEngine:
    """Process-wide engine built from DATABASE_URL on first use."""
    global _engine

    if _engine is None:
        db_config = get_config().db
        engine_kwargs = {"echo": db_config.echo}

        if _is_sqlite(db_config.url):
            _engine = create_async_engine(db_config.url, **engine_kwargs)
            enable_sqlite_foreign_keys(_engine)
        else:
            engine_kwargs.update(
                pool_size=db_config.pool_size,
                max_overflow=db_config.pool_max_overflow,
                pool_timeout=db_config.pool_timeout,
                pool_pre_ping=True,
                pool_recycle=3600,
            )
            _engine = create_async_engine(db_config.url, **engine_kwargs)
        logger.debug("db_engine_created", dialect=_engine.dialect.name)

    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        # Rows are read back after commit to build responses
        _session_factory = sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: committed on normal exit, rolled back on any exception.

    Usage:
        async with get_session() as session:
            await service.create_quotation(session, payload)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_session() as session:
        yield session


async def init_db(drop: bool = False) -> None:
    """Create the catalog tables, dropping them first when ``drop`` is set."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("db_initialized", dropped=drop)


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
