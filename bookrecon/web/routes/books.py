"""Book catalog routes: classification, resolution, direct edits and pricing.

Routes:
- POST /api/books/check-duplicate  - Classify a submission (409 for conflicts)
- POST /api/books                  - Apply a resolution action
- GET  /api/books/suggestions      - Title typeahead
- PUT  /api/books/{book_id}        - Direct edit of a book and one pricing row
- GET  /api/books/{book_id}/pricing - Book with all pricing rows and statistics
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.catalog import repository, service
from bookrecon.config import get_config
from bookrecon.db.connection import get_db
from bookrecon.models import BookSubmission, BookUpdate
from bookrecon.reconciliation.models import ResolutionRequest

router = APIRouter(prefix="/api/books", tags=["books"])


@router.post("/check-duplicate")
async def check_duplicate(
    submission: BookSubmission,
    db: AsyncSession = Depends(get_db),
):
    """Classify a submission against the catalog without changing it."""
    result = await service.check_submission(db, submission)
    status_code = 409 if result.book_status.is_conflict else 200
    return JSONResponse(status_code=status_code, content=result.to_wire())


@router.post("")
async def create_book(
    resolution: ResolutionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Perform the chosen action; stale context is 409, an illegal action 400."""
    async with service.resolution_lock(resolution.book_data):
        response = await service.apply_resolution(db, resolution)
        await db.commit()
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/suggestions")
async def book_suggestions(
    q: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
):
    if not q.strip():
        return {"success": True, "suggestions": []}
    limit = get_config().typeahead.max_results
    return {"success": True, "suggestions": await repository.book_suggestions(db, q, limit)}


@router.put("/{book_id}")
async def update_book(
    book_id: str,
    update: BookUpdate,
    db: AsyncSession = Depends(get_db),
):
    book, pricing = await service.update_book(db, book_id, update)
    publisher = await repository.publisher_name(db, book.publisher_id)
    return {
        "success": True,
        "message": "Book updated.",
        "book": repository.to_book_record(book, publisher).model_dump(mode="json"),
        "pricing": repository.to_pricing_record(pricing).model_dump(mode="json") if pricing else None,
    }


@router.get("/{book_id}/pricing")
async def book_pricing(
    book_id: str,
    db: AsyncSession = Depends(get_db),
):
    detail = await service.book_pricing_detail(db, book_id)
    return detail.model_dump(mode="json", by_alias=True)
