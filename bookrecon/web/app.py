"""FastAPI reference catalog service for bookrecon."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware

from bookrecon.config import get_config
from bookrecon.core.errors import (
    CatalogNotFoundError,
    InvalidResolutionError,
    LocalValidationError,
    StaleResolutionError,
)
from bookrecon.core.logging import configure_logging
from bookrecon.db.connection import close_db, init_db
from bookrecon.web.routes import books, health, publishers, quotations

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("catalog_service_started")
    yield
    await close_db()


app = FastAPI(
    title="bookrecon catalog",
    description="Reference catalog for book reconciliation and quotations",
    version="0.1.0",
    lifespan=lifespan,
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception Handlers
@app.exception_handler(CatalogNotFoundError)
async def not_found_handler(request: Request, exc: CatalogNotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "message": str(exc)})


@app.exception_handler(StaleResolutionError)
async def stale_resolution_handler(request: Request, exc: StaleResolutionError):
    content = {"success": False, "message": str(exc)}
    if exc.current is not None:
        content["current"] = exc.current.to_wire()
    return JSONResponse(status_code=409, content=content)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # A concurrent write won a unique constraint; the caller must re-check
    logger.warning("write_conflict", path=request.url.path, error=str(exc.orig))
    return JSONResponse(
        status_code=409,
        content={
            "success": False,
            "message": "The catalog changed while this request was applied; check it again.",
        },
    )


@app.exception_handler(InvalidResolutionError)
async def invalid_resolution_handler(request: Request, exc: InvalidResolutionError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(LocalValidationError)
async def validation_handler(request: Request, exc: LocalValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": str(exc), "errors": exc.errors},
    )


# Include Routers
app.include_router(health.router)
app.include_router(books.router)
app.include_router(publishers.router)
app.include_router(quotations.router)
