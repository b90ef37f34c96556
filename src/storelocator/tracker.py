"""Position tracker.

Owns:
- one-shot and continuous reads against an injected position source
- normalization of source failures into :class:`TrackingError` state
- the loading flag and change notifications for presentation code
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from storelocator import geo
from storelocator.config import StoreLocatorConfig, TrackingOptions
from storelocator.exceptions import PositionSourceError
from storelocator.messages import DEFAULT_LANGUAGE, error_message
from storelocator.models.errors import TrackingError, TrackingErrorKind, kind_for_code
from storelocator.models.position import Position
from storelocator.models.state import TrackerState
from storelocator.sources import PositionSource

_logger = logging.getLogger(__name__)

_tracker_ids = itertools.count(1)

# Placeholder for a watch registered before the source returned its id.
_REGISTERING = object()
_MISSING = object()


@dataclass(frozen=True, slots=True)
class WatchHandle:
    """Opaque handle for one continuous subscription.

    Only the tracker that issued it can release it.
    """

    tracker_id: int
    token: int


class PositionTracker:
    """Track the user's position through a :class:`PositionSource`.

    Failures never raise across this boundary: they are stored as
    :attr:`error` (and returned from :meth:`request_once`) so callers can
    render a retry affordance. No retry is attempted automatically.

    Usage::

        tracker = PositionTracker(source)
        result = await tracker.request_once()
        if isinstance(result, TrackingError):
            ...
    """

    distance_meters = staticmethod(geo.distance_meters)

    def __init__(
        self,
        source: PositionSource | None,
        *,
        options: TrackingOptions | None = None,
        language: str = DEFAULT_LANGUAGE,
        on_change: Callable[[TrackerState], None] | None = None,
    ) -> None:
        self._source = source
        self._options = options if options is not None else TrackingOptions()
        self._language = language
        self._on_change = on_change
        self._id = next(_tracker_ids)
        self._tokens = itertools.count(1)

        self._position: Position | None = None
        self._error: TrackingError | None = None
        self._requests: set[asyncio.Future[Position | TrackingError]] = set()
        self._watches: dict[int, object] = {}
        self._awaiting_first_fix: set[int] = set()
        self._closed = False

    @classmethod
    def from_config(
        cls,
        source: PositionSource | None,
        config: StoreLocatorConfig,
        *,
        on_change: Callable[[TrackerState], None] | None = None,
    ) -> PositionTracker:
        return cls(source, options=config.tracking, language=config.language, on_change=on_change)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def error(self) -> TrackingError | None:
        return self._error

    @property
    def loading(self) -> bool:
        """True while a one-shot read or a watch's first fix is outstanding."""
        return bool(self._requests) or bool(self._awaiting_first_fix)

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> TrackerState:
        return TrackerState(
            position=self._position,
            error=self._error,
            loading=self.loading,
            active_watches=self.active_watches,
        )

    def clear_error(self) -> None:
        """Drop a stale error without issuing a new read."""
        if self._error is None:
            return
        self._error = None
        self._notify()

    # ------------------------------------------------------------------
    # One-shot reads
    # ------------------------------------------------------------------

    async def request_once(self, options: TrackingOptions | None = None) -> Position | TrackingError:
        """Read the position once.

        Returns the new :class:`Position` or the :class:`TrackingError`
        now stored in :attr:`error`. Timeouts are left to the source's
        own ``timeout_ms`` handling.
        """
        resolved = options if options is not None else self._options
        if self._closed:
            return self._make_error(TrackingErrorKind.UNKNOWN, "tracker is closed")
        if not self._supported():
            return self._reject_unsupported()

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Position | TrackingError] = loop.create_future()
        self._requests.add(future)
        future.add_done_callback(self._request_finished)
        self._error = None
        self._notify()

        def on_fix(position: Position) -> None:
            if future.done() or self._closed:
                _logger.debug("Discarding fix for settled one-shot request")
                return
            self._requests.discard(future)
            self._accept(position)
            future.set_result(position)

        def on_error(exc: Exception) -> None:
            if future.done() or self._closed:
                _logger.debug("Discarding error for settled one-shot request")
                return
            self._requests.discard(future)
            error = self._reject(exc)
            future.set_result(error)

        _logger.debug(
            "Position request: high_accuracy=%s timeout_ms=%d max_cache_age_ms=%d",
            resolved.high_accuracy,
            resolved.timeout_ms,
            resolved.max_cache_age_ms,
        )
        assert self._source is not None  # noqa: S101
        try:
            self._source.request_once(on_fix, on_error, resolved)
        except Exception as exc:  # noqa: BLE001
            on_error(exc)
        return await future

    def _request_finished(self, future: asyncio.Future[Position | TrackingError]) -> None:
        # Covers cancellation of the awaiting task; normal completion has
        # already removed the future before notifying.
        if future in self._requests:
            self._requests.discard(future)
            self._notify()

    # ------------------------------------------------------------------
    # Continuous reads
    # ------------------------------------------------------------------

    def start_watching(self, options: TrackingOptions | None = None) -> WatchHandle:
        """Subscribe to continuous updates and return the handle synchronously.

        Every callback overwrites :attr:`position` or sets :attr:`error`; an
        error does not end the watch. The handle must be released with
        :meth:`stop_watching`.
        """
        resolved = options if options is not None else self._options
        handle = WatchHandle(tracker_id=self._id, token=next(self._tokens))
        if self._closed:
            _logger.debug("Watch requested on closed tracker; returning inert handle")
            return handle
        if not self._supported():
            self._reject_unsupported()
            return handle

        token = handle.token
        self._watches[token] = _REGISTERING
        self._awaiting_first_fix.add(token)
        self._error = None
        self._notify()

        def on_fix(position: Position) -> None:
            if token not in self._watches:
                _logger.debug("Discarding fix from released watch token=%d", token)
                return
            self._awaiting_first_fix.discard(token)
            self._accept(position)

        def on_error(exc: Exception) -> None:
            if token not in self._watches:
                _logger.debug("Discarding error from released watch token=%d", token)
                return
            self._awaiting_first_fix.discard(token)
            self._reject(exc)

        assert self._source is not None  # noqa: S101
        try:
            watch_id = self._source.watch(on_fix, on_error, resolved)
        except Exception as exc:  # noqa: BLE001
            on_error(exc)
            self._watches.pop(token, None)
            self._notify()
            return handle

        if token in self._watches:
            self._watches[token] = watch_id
            _logger.debug("Watch started token=%d source_id=%s", token, watch_id)
        else:
            # Released from inside a synchronous callback.
            self._source.cancel_watch(watch_id)
        return handle

    def stop_watching(self, handle: WatchHandle) -> None:
        """Release a watch. Unknown, released or foreign handles are ignored."""
        if handle.tracker_id != self._id:
            _logger.debug("Ignoring handle issued by another tracker")
            return
        watch_id = self._watches.pop(handle.token, _MISSING)
        if watch_id is _MISSING:
            return
        self._awaiting_first_fix.discard(handle.token)
        if watch_id is not _REGISTERING and self._source is not None:
            self._source.cancel_watch(watch_id)  # type: ignore[arg-type]
        _logger.debug("Watch stopped token=%d", handle.token)
        self._notify()

    @contextlib.contextmanager
    def watching(self, options: TrackingOptions | None = None) -> Iterator[WatchHandle]:
        """Watch for the duration of a ``with`` block."""
        handle = self.start_watching(options)
        try:
            yield handle
        finally:
            self.stop_watching(handle)

    def close(self) -> None:
        """Release every watch and abandon pending one-shot reads."""
        if self._closed:
            return
        for token in list(self._watches):
            self.stop_watching(WatchHandle(tracker_id=self._id, token=token))
        self._closed = True
        pending = list(self._requests)
        self._requests.clear()
        closed_error = self._make_error(TrackingErrorKind.UNKNOWN, "tracker closed")
        for future in pending:
            if not future.done():
                future.set_result(closed_error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _supported(self) -> bool:
        return self._source is not None and self._source.available

    def _reject_unsupported(self) -> TrackingError:
        error = self._make_error(TrackingErrorKind.UNSUPPORTED)
        self._position = None
        self._error = error
        self._notify()
        return error

    def _make_error(self, kind: TrackingErrorKind, detail: str | None = None) -> TrackingError:
        return TrackingError(kind=kind, message=error_message(kind, self._language), detail=detail)

    def _accept(self, position: Position) -> None:
        self._position = position
        self._error = None
        self._notify()

    def _reject(self, exc: BaseException) -> TrackingError:
        if isinstance(exc, PositionSourceError):
            kind = kind_for_code(exc.code)
        else:
            kind = TrackingErrorKind.UNKNOWN
        error = self._make_error(kind, str(exc) or None)
        _logger.debug("Position read failed: kind=%s detail=%s", kind, error.detail)
        self._position = None
        self._error = error
        self._notify()
        return error

    def _notify(self) -> None:
        if self._on_change is None or self._closed:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:
            _logger.warning("Tracker change listener failed", exc_info=True)
