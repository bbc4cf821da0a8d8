"""Async client for the remote catalog API."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from bookrecon.config import get_config
from bookrecon.core.errors import ApiError
from bookrecon.core.session import ApiSession
from bookrecon.models import BookPricingDetail, BookSubmission, BookUpdate
from bookrecon.quotation.models import PreviewBook, Quotation, QuotationPayload
from bookrecon.reconciliation.classifier import parse_result
from bookrecon.reconciliation.models import (
    ReconciliationResult,
    ResolutionRequest,
    ResolutionResponse,
)

logger = structlog.get_logger()

# check-duplicate answers CONFLICT/AUTHOR_CONFLICT with 409; that is a result, not an error
CLASSIFICATION_STATUSES = (200, 409)


class CatalogApiClient:
    """Client for the book catalog and quotation endpoints.

    Every non-2xx response (other than the modeled 409 on classification)
    and every transport failure is raised as ApiError. Nothing is retried.
    """

    def __init__(
        self,
        session: ApiSession | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        config = get_config()
        self.session = session or ApiSession.anonymous()
        self.client = httpx.AsyncClient(
            base_url=self.session.base_url,
            timeout=timeout if timeout is not None else config.api.timeout_seconds,
            headers=self.session.headers(),
            cookies=self.session.cookies,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    async def check_duplicate(self, submission: BookSubmission) -> ReconciliationResult:
        response = await self._request(
            "POST",
            "/api/books/check-duplicate",
            json=submission.to_wire(),
            accept=CLASSIFICATION_STATUSES,
        )
        result = parse_result(self._json(response))
        logger.info(
            "book_classified",
            status=result.book_status.value,
            pricing_status=result.pricing_status.value if result.pricing_status else None,
            book_id=result.book_id,
            http_status=response.status_code,
        )
        return result

    async def create_book(self, request: ResolutionRequest) -> ResolutionResponse:
        response = await self._request("POST", "/api/books", json=request.to_wire())
        return self._parse(ResolutionResponse, self._json(response))

    async def update_book(self, book_id: str, update: BookUpdate) -> dict[str, Any]:
        response = await self._request("PUT", f"/api/books/{book_id}", json=update.to_wire())
        return self._json(response)

    async def get_book_pricing(self, book_id: str) -> BookPricingDetail:
        response = await self._request("GET", f"/api/books/{book_id}/pricing")
        return self._parse(BookPricingDetail, self._json(response))

    async def book_suggestions(self, query: str) -> list[str]:
        response = await self._request("GET", "/api/books/suggestions", params={"q": query})
        return list(self._json(response).get("suggestions", []))

    async def publisher_suggestions(self, query: str) -> list[str]:
        response = await self._request("GET", "/api/publisher-suggestions", params={"q": query})
        return list(self._json(response).get("suggestions", []))

    # ------------------------------------------------------------------
    # Quotations
    # ------------------------------------------------------------------

    async def quotation_preview(self, book_ids: Iterable[str]) -> list[PreviewBook]:
        params = [("id", book_id) for book_id in book_ids]
        response = await self._request("GET", "/api/quotations/preview", params=params)
        rows = self._json(response).get("data", [])
        return [self._parse(PreviewBook, row) for row in rows]

    async def list_quotations(self) -> list[Quotation]:
        response = await self._request("GET", "/api/quotations")
        rows = self._json(response).get("quotations", [])
        return [self._parse(Quotation, row) for row in rows]

    async def get_quotation(self, quotation_id: str) -> Quotation:
        response = await self._request("GET", f"/api/quotations/{quotation_id}")
        return self._parse(Quotation, self._json(response).get("quotation"))

    async def create_quotation(self, payload: QuotationPayload) -> Quotation:
        response = await self._request("POST", "/api/quotations", json=payload.to_wire())
        return self._parse(Quotation, self._json(response).get("quotation"))

    async def update_quotation(self, quotation_id: str, payload: QuotationPayload) -> Quotation:
        response = await self._request(
            "PUT", f"/api/quotations/{quotation_id}", json=payload.to_wire()
        )
        return self._parse(Quotation, self._json(response).get("quotation"))

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        accept: Sequence[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("api_request_timeout", method=method, path=path)
            raise ApiError("Request to the catalog API timed out.", details=str(exc)) from exc
        except httpx.RequestError as exc:
            logger.warning("api_request_failed", method=method, path=path, error=str(exc))
            raise ApiError("No response received from server.", details=str(exc)) from exc

        if response.is_success or response.status_code in accept:
            return response

        error = _error_from_response(response)
        logger.warning(
            "api_error_response",
            method=method,
            path=path,
            status_code=error.status_code,
            error=error.message,
        )
        raise error

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                "Catalog API returned a non-JSON body",
                status_code=response.status_code,
                details=response.text[:500],
            ) from exc

    @staticmethod
    def _parse(model: type, payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ApiError(
                f"Malformed {model.__name__} in API response", details=exc.errors()
            ) from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> CatalogApiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        data = response.json()
    except ValueError:
        data = None

    message = None
    if isinstance(data, dict):
        message = data.get("message")
        detail = data.get("detail")
        if not message and isinstance(detail, str):
            message = detail
        elif not message and isinstance(detail, dict):
            message = detail.get("message")
    return ApiError(
        message or f"Catalog API error: {response.reason_phrase or response.status_code}",
        status_code=response.status_code,
        details=data if data is not None else response.text[:500],
    )
