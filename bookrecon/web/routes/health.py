"""Health check API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.db.connection import get_db

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus database connectivity."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return {"status": "error", "database": "disconnected", "detail": str(exc)}
    return {"status": "ok", "database": "connected"}
