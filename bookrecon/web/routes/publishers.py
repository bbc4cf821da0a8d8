"""Publisher typeahead route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.catalog import repository
from bookrecon.config import get_config
from bookrecon.db.connection import get_db

router = APIRouter(prefix="/api", tags=["publishers"])


@router.get("/publisher-suggestions")
async def publisher_suggestions(
    q: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
):
    """Publisher names containing ``q``, case-insensitive."""
    if not q.strip():
        return {"success": True, "suggestions": []}
    limit = get_config().typeahead.max_results
    return {"success": True, "suggestions": await repository.publisher_suggestions(db, q, limit)}
