"""Resolution executor: turns a chosen action into exactly one API call."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from bookrecon.core.errors import ResolutionInProgressError
from bookrecon.models import BookSubmission
from bookrecon.reconciliation.classifier import allowed_actions, check_action
from bookrecon.reconciliation.models import (
    BookStatus,
    ReconciliationResult,
    ResolutionAction,
    ResolutionRequest,
    ResolutionResponse,
)

if TYPE_CHECKING:
    from bookrecon.api.client import CatalogApiClient

logger = structlog.get_logger()


def target_key(submission: BookSubmission, result: ReconciliationResult) -> str:
    """Key that identifies the book under review.

    The matched bookId when there is one; a NEW book has no id yet, so its
    normalized identifier stands in.
    """
    if result.book_status == BookStatus.NEW or not result.book_id:
        return f"new:{submission.book_data.identifier}"
    return f"book:{result.book_id}"


class ResolutionExecutor:
    """Issues resolution requests, at most one in flight per target.

    The in-flight set plays the role of a disabled button: a second call for
    the same target while the first is outstanding raises
    ResolutionInProgressError without touching the network.
    """

    def __init__(self, client: CatalogApiClient):
        self.client = client
        self._in_flight: set[str] = set()

    def is_busy(self, submission: BookSubmission, result: ReconciliationResult) -> bool:
        return target_key(submission, result) in self._in_flight

    def available_actions(self, result: ReconciliationResult) -> list[ResolutionAction]:
        """Allowed actions in a stable display order."""
        offered = allowed_actions(result)
        return [action for action in ResolutionAction if action in offered]

    async def resolve(
        self,
        submission: BookSubmission,
        result: ReconciliationResult,
        action: ResolutionAction,
    ) -> ResolutionResponse:
        """Send ``action`` for ``result``.

        Raises:
            InvalidResolutionError: action not offered for this classification
            ResolutionInProgressError: a request for this target is outstanding
            ApiError: the server rejected the request or was unreachable
        """
        check_action(result, action)

        key = target_key(submission, result)
        if key in self._in_flight:
            logger.info("resolution_blocked", target=key, action=action.value)
            raise ResolutionInProgressError(key)

        request = ResolutionRequest.for_result(submission, result, action)
        self._in_flight.add(key)
        logger.info(
            "resolution_started",
            target=key,
            action=action.value,
            status=result.book_status.value,
            pricing_id=result.pricing_id,
        )
        try:
            response = await self.client.create_book(request)
        finally:
            self._in_flight.discard(key)

        logger.info(
            "resolution_completed",
            target=key,
            action=action.value,
            book_id=response.book_id,
            pricing_id=response.pricing_id,
        )
        return response
