"""IP-geolocation position source.

Resolves an approximate position from a JSON lookup endpoint for hosts
that have no location sensor. Watches are served by polling the
endpoint at a fixed interval.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from storelocator.config import DEFAULT_LOOKUP_URL, StoreLocatorConfig, TrackingOptions
from storelocator.exceptions import PositionSourceError, PositionTransportError
from storelocator.models._base import now_ms
from storelocator.models.errors import SensorErrorCode
from storelocator.models.position import Position
from storelocator.sources import ErrorCallback, FixCallback

_logger = logging.getLogger(__name__)

_DENIED_STATUSES = frozenset({401, 403})


def _parse_lookup(payload: Any, default_accuracy_m: float) -> Position:
    """Parse a lookup response into a :class:`Position`.

    Lookup services disagree on key names (``lat``/``latitude``,
    ``lon``/``lng``/``longitude``) and some nest the fix under ``data``
    or ``location``; all of these are accepted.
    """
    if not isinstance(payload, dict):
        raise PositionSourceError(
            "Lookup response is not a JSON object",
            code=SensorErrorCode.POSITION_UNAVAILABLE,
        )
    if payload.get("error") is True or payload.get("status") == "fail":
        reason = payload.get("reason") or payload.get("message") or "lookup refused"
        raise PositionSourceError(str(reason), code=SensorErrorCode.POSITION_UNAVAILABLE)

    merged = dict(payload)
    for key in ("data", "location"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            merged.update(nested)
    merged.setdefault("accuracy", default_accuracy_m)
    merged.setdefault("timestamp", now_ms())

    try:
        return Position.model_validate(merged)
    except (ValidationError, ValueError, OverflowError) as exc:
        detail = f"{exc.error_count()} error(s)" if isinstance(exc, ValidationError) else str(exc)
        raise PositionSourceError(
            f"Lookup response has no usable coordinates: {detail}",
            code=SensorErrorCode.POSITION_UNAVAILABLE,
        ) from exc


class HttpPositionSource:
    """Position source backed by an IP-geolocation HTTP endpoint.

    ``high_accuracy`` cannot be honored by an IP lookup and is ignored;
    ``timeout_ms`` bounds each HTTP request and ``max_cache_age_ms``
    allows a recent fix to be reused without a request.

    Usage::

        async with aiohttp.ClientSession() as http:
            source = HttpPositionSource(http)
            tracker = PositionTracker(source)
            await tracker.request_once()
            await source.aclose()
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        url: str = DEFAULT_LOOKUP_URL,
        poll_interval_s: float = 30.0,
        default_accuracy_m: float = 5_000.0,
    ) -> None:
        self._http = http_session
        self._url = url
        self._poll_interval_s = poll_interval_s
        self._default_accuracy_m = default_accuracy_m
        self._cached: Position | None = None
        self._ids = itertools.count(1)
        self._reads: dict[asyncio.Task[None], ErrorCallback] = {}
        self._watch_tasks: dict[int, asyncio.Task[None]] = {}

    @classmethod
    def from_config(cls, http_session: aiohttp.ClientSession, config: StoreLocatorConfig) -> HttpPositionSource:
        return cls(
            http_session,
            url=config.lookup_url,
            poll_interval_s=config.lookup_poll_interval_s,
            default_accuracy_m=config.default_accuracy_m,
        )

    @property
    def available(self) -> bool:
        return not self._http.closed

    # ------------------------------------------------------------------
    # PositionSource interface
    # ------------------------------------------------------------------

    def request_once(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> None:
        task = asyncio.get_running_loop().create_task(self._read_once(on_fix, on_error, options))
        self._reads[task] = on_error
        task.add_done_callback(lambda done: self._reads.pop(done, None))

    def watch(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> int:
        watch_id = next(self._ids)
        task = asyncio.get_running_loop().create_task(self._poll(watch_id, on_fix, on_error, options))
        self._watch_tasks[watch_id] = task
        task.add_done_callback(lambda _task: self._watch_tasks.pop(watch_id, None))
        return watch_id

    def cancel_watch(self, watch_id: int) -> None:
        task = self._watch_tasks.pop(watch_id, None)
        if task is not None:
            task.cancel()

    async def aclose(self) -> None:
        """Cancel outstanding reads and polls.

        Every abandoned one-shot read is answered with a
        ``POSITION_UNAVAILABLE`` error so its caller is not left waiting.
        """
        reads = list(self._reads.items())
        self._reads.clear()
        tasks = [task for task, _ in reads] + list(self._watch_tasks.values())
        self._watch_tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        for task, on_error in reads:
            if task.cancelled():
                on_error(PositionSourceError("lookup source closed", code=SensorErrorCode.POSITION_UNAVAILABLE))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def fetch_position(self, options: TrackingOptions) -> Position:
        """Fetch one fix, reusing the cached one when it is fresh enough.

        Raises
        ------
        PositionSourceError
            With ``TIMEOUT`` when the request exceeds ``timeout_ms``,
            ``PERMISSION_DENIED`` for 401/403 responses and
            ``POSITION_UNAVAILABLE`` for every other failure.
        """
        cached = self._cached
        if cached is not None and options.max_cache_age_ms > 0 and cached.age_ms() <= options.max_cache_age_ms:
            _logger.debug("Lookup served from cache (age_ms=%d)", cached.age_ms())
            return cached

        timeout = aiohttp.ClientTimeout(total=options.timeout_ms / 1000.0 if options.timeout_ms > 0 else None)
        _logger.debug("GET %s", self._url)
        try:
            async with self._http.get(self._url, timeout=timeout) as resp:
                text = await resp.text()
                status = resp.status
        except TimeoutError as exc:
            raise PositionSourceError(
                f"Lookup timed out after {options.timeout_ms} ms",
                code=SensorErrorCode.TIMEOUT,
            ) from exc
        except aiohttp.ClientError as exc:
            raise PositionTransportError(f"Lookup request failed: {exc}", url=self._url) from exc

        if status in _DENIED_STATUSES:
            raise PositionTransportError(
                f"HTTP {status} from lookup: {text[:200]}",
                code=SensorErrorCode.PERMISSION_DENIED,
                status_code=status,
                url=self._url,
            )
        if status != 200:
            raise PositionTransportError(
                f"HTTP {status} from lookup: {text[:200]}",
                status_code=status,
                url=self._url,
            )

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PositionTransportError(
                f"Invalid JSON from lookup: {text[:200]}",
                status_code=status,
                url=self._url,
            ) from exc

        position = _parse_lookup(payload, self._default_accuracy_m)
        self._cached = position
        return position

    async def _read_once(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> None:
        try:
            position = await self.fetch_position(options)
        except PositionSourceError as exc:
            _logger.debug("Lookup failed", exc_info=True)
            on_error(exc)
            return
        except Exception as exc:
            _logger.warning("Lookup raised unexpectedly", exc_info=True)
            on_error(PositionSourceError(f"Lookup failed: {exc!r}", code=SensorErrorCode.POSITION_UNAVAILABLE))
            return
        on_fix(position)

    async def _poll(
        self,
        watch_id: int,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        options: TrackingOptions,
    ) -> None:
        attempt = 0
        while True:
            attempt += 1
            _logger.debug("Lookup poll watch=%d attempt=%d", watch_id, attempt)
            await self._read_once(on_fix, on_error, options)
            await asyncio.sleep(self._poll_interval_s)
