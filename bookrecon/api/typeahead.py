"""Debounced typeahead for book titles and publisher names.

Example:
    >>> fetcher = SuggestionFetcher(client.book_suggestions)
    >>> fetcher.update("gat")        # schedules a lookup 300 ms from now
    >>> fetcher.update("gats")       # cancels it and schedules a new one
    >>> await fetcher.wait()
    >>> fetcher.suggestions
    ['The Great Gatsby']
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from bookrecon.config import get_config
from bookrecon.core.errors import ApiError

logger = structlog.get_logger()


class Debouncer:
    """Runs the most recently triggered callback once the delay has elapsed.

    Every ``trigger`` cancels whatever is still waiting. A callback that has
    already started is not interrupted.
    """

    def __init__(self, delay_ms: int | None = None):
        if delay_ms is None:
            delay_ms = get_config().typeahead.debounce_ms
        self.delay = delay_ms / 1000
        self._task: asyncio.Task | None = None
        self._callback: Callable[[], Awaitable[Any]] | None = None

    @property
    def pending(self) -> bool:
        """True while a callback is waiting out its delay."""
        return self._callback is not None

    def trigger(self, callback: Callable[[], Awaitable[Any]]) -> None:
        self.cancel()
        self._callback = callback
        self._task = asyncio.get_running_loop().create_task(self._run(callback))

    def cancel(self) -> None:
        if self._callback is not None and self._task is not None:
            self._task.cancel()
        self._callback = None

    async def flush(self) -> None:
        """Run the waiting callback now instead of after the delay."""
        callback = self._callback
        if callback is None:
            return
        self.cancel()
        await callback()

    async def wait(self) -> None:
        """Wait for the scheduled callback, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self, callback: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self.delay)
        if self._callback is not callback:
            return
        self._callback = None
        await callback()


class SuggestionFetcher:
    """Keeps ``suggestions`` in step with the latest query.

    Queries shorter than the minimum length clear the list without a request.
    A response that arrives after a newer query was issued is dropped.
    """

    def __init__(
        self,
        lookup: Callable[[str], Awaitable[list[str]]],
        debouncer: Debouncer | None = None,
        min_chars: int | None = None,
        max_results: int | None = None,
    ):
        config = get_config().typeahead
        self.lookup = lookup
        self.debouncer = debouncer or Debouncer()
        self.min_chars = config.min_chars if min_chars is None else min_chars
        self.max_results = config.max_results if max_results is None else max_results
        self.query = ""
        self.suggestions: list[str] = []
        self.error: ApiError | None = None
        self._generation = 0

    def update(self, query: str) -> None:
        self.query = query.strip()
        self._generation += 1
        if len(self.query) < self.min_chars:
            self.debouncer.cancel()
            self.suggestions = []
            return

        generation = self._generation
        query = self.query
        self.debouncer.trigger(lambda: self._fetch(query, generation))

    async def wait(self) -> None:
        await self.debouncer.wait()

    def clear(self) -> None:
        self.update("")

    async def _fetch(self, query: str, generation: int) -> None:
        try:
            results = await self.lookup(query)
        except ApiError as exc:
            logger.warning("suggestion_lookup_failed", query=query, error=str(exc))
            if generation == self._generation:
                self.error = exc
                self.suggestions = []
            return

        if generation != self._generation:
            logger.debug("suggestion_response_stale", query=query)
            return
        self.error = None
        self.suggestions = list(results)[: self.max_results]
