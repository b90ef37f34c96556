"""Debounced search dispatch.

Keystrokes go through a :class:`ValueStabilizer`; a search runs only for
settled queries long enough to be worth sending, and a newer query always
supersedes the one in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from storelocator.config import StoreLocatorConfig
from storelocator.scheduler import Scheduler
from storelocator.stabilizer import ValueStabilizer

_logger = logging.getLogger(__name__)

R = TypeVar("R")


class QueryDispatcher(Generic[R]):
    """Dispatch ``search(query)`` for settled search-box input.

    Parameters
    ----------
    search
        Coroutine function performing the (expensive) lookup.
    quiet_period_ms
        Debounce quiet period for raw input.
    min_length
        Minimum stripped query length; shorter queries cancel the
        in-flight search and dispatch nothing.
    scheduler
        Timer capability handed to the stabilizer.
    on_results
        Called with ``(query, results)`` for the current query only.
    on_error
        Called with ``(query, exception)`` when the search raises.
        Without it the failure is logged and kept in :attr:`last_error`.
    """

    def __init__(
        self,
        search: Callable[[str], Awaitable[R]],
        *,
        quiet_period_ms: int = 300,
        min_length: int = 2,
        scheduler: Scheduler | None = None,
        on_results: Callable[[str, R], None] | None = None,
        on_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self._search = search
        self._min_length = min_length
        self._on_results = on_results
        self._on_error = on_error
        self._stabilizer: ValueStabilizer[str] = ValueStabilizer(
            "",
            quiet_period_ms,
            scheduler=scheduler,
            on_settle=self._dispatch,
        )
        self._task: asyncio.Task[None] | None = None
        self._active_query: str | None = None
        self._last_results: R | None = None
        self.last_error: Exception | None = None

    @classmethod
    def from_config(
        cls,
        search: Callable[[str], Awaitable[R]],
        config: StoreLocatorConfig,
        **kwargs: object,
    ) -> QueryDispatcher[R]:
        return cls(
            search,
            quiet_period_ms=config.search_quiet_period_ms,
            min_length=config.search_min_length,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def text(self) -> str:
        """The latest raw input."""
        return self._stabilizer.raw

    @property
    def settled_text(self) -> str:
        return self._stabilizer.stable

    @property
    def active_query(self) -> str | None:
        """The query whose results are (or will be) current."""
        return self._active_query

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_results(self) -> R | None:
        return self._last_results

    def update(self, text: str) -> None:
        """Feed raw input; dispatch happens once it settles."""
        self._stabilizer.observe(text)

    def submit(self, text: str) -> None:
        """Feed input and dispatch it immediately (e.g. on Enter)."""
        self._stabilizer.observe(text)
        self._stabilizer.flush()

    async def aclose(self) -> None:
        self._stabilizer.close()
        self._active_query = None
        await self._cancel_in_flight()

    def _dispatch(self, text: str) -> None:
        query = text.strip()
        self._cancel_task()
        if len(query) < self._min_length:
            _logger.debug("Query below minimum length (%d < %d); not dispatching", len(query), self._min_length)
            self._active_query = None
            self._last_results = None
            return
        self._active_query = query
        self._task = asyncio.get_running_loop().create_task(self._run(query))

    async def _run(self, query: str) -> None:
        _logger.debug("Search dispatched: %r", query)
        try:
            results = await self._search(query)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if query != self._active_query:
                return
            self.last_error = exc
            if self._on_error is None:
                _logger.warning("Search for %r failed", query, exc_info=True)
                return
            try:
                self._on_error(query, exc)
            except Exception:
                _logger.warning("Search error handler failed for %r", query, exc_info=True)
            return

        if query != self._active_query:
            _logger.debug("Dropping results for superseded query %r", query)
            return
        self.last_error = None
        self._last_results = results
        if self._on_results is None:
            return
        try:
            self._on_results(query, results)
        except Exception:
            _logger.warning("Search results handler failed for %r", query, exc_info=True)

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _cancel_in_flight(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
