"""Quotation routes.

Routes:
- GET  /api/quotations                 - List quotations, newest first
- GET  /api/quotations/preview?id=..   - Selected books with their lowest price
- GET  /api/quotations/{quotation_id}  - One quotation with its items
- POST /api/quotations                 - Save a new quotation
- PUT  /api/quotations/{quotation_id}  - Replace a quotation's contents

``/preview`` is declared before ``/{quotation_id}`` so it is not taken for an id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bookrecon.catalog import repository, service
from bookrecon.db.connection import get_db
from bookrecon.quotation.models import Quotation, QuotationPayload

router = APIRouter(prefix="/api/quotations", tags=["quotations"])


def _dump(quotation: Quotation) -> dict:
    return quotation.model_dump(mode="json", by_alias=True)


@router.get("")
async def list_quotations(db: AsyncSession = Depends(get_db)):
    quotations = await repository.fetch_quotations(db)
    return {"success": True, "quotations": [_dump(q) for q in quotations]}


@router.get("/preview")
async def quotation_preview(
    ids: list[str] | None = Query(default=None, alias="id"),
    db: AsyncSession = Depends(get_db),
):
    if not ids:
        raise HTTPException(status_code=400, detail="At least one book id is required")
    previews = await service.preview_books(db, ids)
    return {
        "success": True,
        "data": [p.model_dump(mode="json", by_alias=True) for p in previews],
    }


@router.get("/{quotation_id}")
async def get_quotation(quotation_id: str, db: AsyncSession = Depends(get_db)):
    quotation = await repository.fetch_quotation(db, quotation_id)
    return {"success": True, "quotation": _dump(quotation)}


@router.post("", status_code=201)
async def create_quotation(payload: QuotationPayload, db: AsyncSession = Depends(get_db)):
    quotation = await service.create_quotation(db, payload)
    return {"success": True, "quotation": _dump(quotation)}


@router.put("/{quotation_id}")
async def update_quotation(
    quotation_id: str,
    payload: QuotationPayload,
    db: AsyncSession = Depends(get_db),
):
    quotation = await service.update_quotation(db, quotation_id, payload)
    return {"success": True, "quotation": _dump(quotation)}
