from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest

from storelocator.config import StoreLocatorConfig, TrackingOptions
from storelocator.exceptions import PositionSourceError, PositionTransportError
from storelocator.models.errors import SensorErrorCode, TrackingError, TrackingErrorKind
from storelocator.models.position import Position
from storelocator.sources.http import HttpPositionSource
from storelocator.tracker import PositionTracker

LOOKUP_URL = "https://lookup.example/json"


@dataclass
class _FakeResponse:
    status: int
    body: str

    async def text(self) -> str:
        return self.body

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


@dataclass
class _StalledResponse(_FakeResponse):
    """A response whose body never arrives."""

    released: asyncio.Event = field(default_factory=asyncio.Event)

    async def text(self) -> str:
        await self.released.wait()
        return self.body


@dataclass
class FakeHttpSession:
    """Stands in for ``aiohttp.ClientSession.get`` with scripted replies."""

    replies: list[Any] = field(default_factory=list)
    calls: list[tuple[str, aiohttp.ClientTimeout | None]] = field(default_factory=list)
    closed: bool = False

    def reply(self, payload: Any, status: int = 200) -> None:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        self.replies.append(_FakeResponse(status=status, body=body))

    def get(self, url: str, *, timeout: aiohttp.ClientTimeout | None = None) -> _FakeResponse:
        self.calls.append((url, timeout))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


def _source(http: FakeHttpSession, **kwargs: Any) -> HttpPositionSource:
    return HttpPositionSource(http, url=LOOKUP_URL, **kwargs)  # type: ignore[arg-type]


FRESH = TrackingOptions(max_cache_age_ms=0)


@pytest.mark.asyncio
async def test_fetch_parses_lookup_payload() -> None:
    http = FakeHttpSession()
    http.reply({"ip": "203.0.113.7", "city": "Seoul", "latitude": 37.5665, "longitude": 126.978})

    position = await _source(http).fetch_position(FRESH)

    assert position.latitude == 37.5665
    assert position.longitude == 126.978
    assert position.accuracy_meters == 5_000.0
    assert http.calls[0][0] == LOOKUP_URL


@pytest.mark.asyncio
async def test_fetch_accepts_nested_short_keys() -> None:
    http = FakeHttpSession()
    http.reply({"status": "success", "location": {"lat": 35.1796, "lon": 129.0756, "accuracy": 800}})

    position = await _source(http).fetch_position(FRESH)

    assert position == Position(
        latitude=35.1796,
        longitude=129.0756,
        accuracy_meters=800,
        captured_at_epoch_ms=position.captured_at_epoch_ms,
    )


@pytest.mark.asyncio
async def test_timeout_bound_from_options() -> None:
    http = FakeHttpSession()
    http.reply({"lat": 1.0, "lon": 2.0})

    await _source(http).fetch_position(TrackingOptions(timeout_ms=2_500, max_cache_age_ms=0))

    timeout = http.calls[0][1]
    assert timeout is not None
    assert timeout.total == 2.5


@pytest.mark.asyncio
async def test_recent_fix_served_from_cache() -> None:
    http = FakeHttpSession()
    http.reply({"lat": 1.0, "lon": 2.0})
    source = _source(http)

    first = await source.fetch_position(TrackingOptions())
    second = await source.fetch_position(TrackingOptions())
    await source.fetch_position(FRESH)

    assert first == second
    assert len(http.calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "code"),
    [
        (401, SensorErrorCode.PERMISSION_DENIED),
        (403, SensorErrorCode.PERMISSION_DENIED),
        (429, SensorErrorCode.POSITION_UNAVAILABLE),
        (500, SensorErrorCode.POSITION_UNAVAILABLE),
    ],
)
async def test_http_status_mapping(status: int, code: SensorErrorCode) -> None:
    http = FakeHttpSession()
    http.reply({"error": "nope"}, status=status)

    with pytest.raises(PositionTransportError) as excinfo:
        await _source(http).fetch_position(FRESH)

    assert excinfo.value.code == code
    assert excinfo.value.status_code == status


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout_code() -> None:
    http = FakeHttpSession(replies=[TimeoutError()])

    with pytest.raises(PositionSourceError) as excinfo:
        await _source(http).fetch_position(FRESH)

    assert excinfo.value.code == SensorErrorCode.TIMEOUT


@pytest.mark.asyncio
async def test_connection_error_is_unavailable() -> None:
    http = FakeHttpSession(replies=[aiohttp.ClientConnectionError("refused")])

    with pytest.raises(PositionTransportError) as excinfo:
        await _source(http).fetch_position(FRESH)

    assert excinfo.value.code == SensorErrorCode.POSITION_UNAVAILABLE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        "<html>rate limited</html>",
        json.dumps(["not", "an", "object"]),
        json.dumps({"status": "fail", "message": "reserved range"}),
        json.dumps({"city": "Nowhere"}),
    ],
)
async def test_unusable_bodies_are_unavailable(body: str) -> None:
    http = FakeHttpSession()
    http.reply(body)

    with pytest.raises(PositionSourceError) as excinfo:
        await _source(http).fetch_position(FRESH)

    assert excinfo.value.code == SensorErrorCode.POSITION_UNAVAILABLE


@pytest.mark.asyncio
async def test_tracker_request_once_through_http_source() -> None:
    http = FakeHttpSession()
    http.reply({}, status=403)
    tracker = PositionTracker(_source(http))

    result = await tracker.request_once(FRESH)

    assert isinstance(result, TrackingError)
    assert result.kind == TrackingErrorKind.PERMISSION_DENIED
    assert tracker.loading is False


@pytest.mark.asyncio
async def test_closed_session_is_unsupported() -> None:
    http = FakeHttpSession(closed=True)
    tracker = PositionTracker(_source(http))

    result = await tracker.request_once()

    assert isinstance(result, TrackingError)
    assert result.kind == TrackingErrorKind.UNSUPPORTED
    assert http.calls == []


@pytest.mark.asyncio
async def test_watch_polls_until_cancelled() -> None:
    http = FakeHttpSession()
    http.reply({"lat": 37.5, "lon": 127.0})
    source = _source(http, poll_interval_s=0.01)
    tracker = PositionTracker(source, options=FRESH)

    handle = tracker.start_watching()
    await asyncio.sleep(0.05)
    tracker.stop_watching(handle)
    await asyncio.sleep(0)
    calls_at_stop = len(http.calls)
    await asyncio.sleep(0.03)

    assert calls_at_stop >= 2
    assert len(http.calls) == calls_at_stop
    assert tracker.position is not None
    assert tracker.position.latitude == 37.5
    await source.aclose()


@pytest.mark.asyncio
async def test_aclose_cancels_outstanding_reads() -> None:
    http = FakeHttpSession()
    http.reply({"lat": 1.0, "lon": 2.0})
    source = _source(http, poll_interval_s=60)

    source.watch(lambda _p: None, lambda _e: None, FRESH)
    await asyncio.sleep(0)
    await source.aclose()

    assert source._watch_tasks == {}  # noqa: SLF001


@pytest.mark.asyncio
async def test_aclose_resolves_pending_tracker_request() -> None:
    http = FakeHttpSession(replies=[_StalledResponse(status=200, body="{}")])
    source = _source(http)
    tracker = PositionTracker(source, options=FRESH)

    task = asyncio.create_task(tracker.request_once())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert tracker.loading is True

    await source.aclose()
    result = await asyncio.wait_for(task, 1.0)

    assert isinstance(result, TrackingError)
    assert result.kind == TrackingErrorKind.POSITION_UNAVAILABLE
    assert result.detail == "lookup source closed"
    assert tracker.loading is False


@pytest.mark.asyncio
async def test_non_finite_timestamp_is_unavailable() -> None:
    http = FakeHttpSession()
    http.reply('{"latitude": 37.5, "longitude": 127.0, "timestamp": Infinity}')
    tracker = PositionTracker(_source(http), options=FRESH)

    result = await asyncio.wait_for(tracker.request_once(), 1.0)

    assert isinstance(result, TrackingError)
    assert result.kind == TrackingErrorKind.POSITION_UNAVAILABLE


@pytest.mark.asyncio
async def test_unexpected_failure_reported_to_request() -> None:
    http = FakeHttpSession(replies=[RuntimeError("Session is closed")])
    tracker = PositionTracker(_source(http), options=FRESH)

    result = await asyncio.wait_for(tracker.request_once(), 1.0)

    assert isinstance(result, TrackingError)
    assert result.kind == TrackingErrorKind.POSITION_UNAVAILABLE
    assert result.detail is not None
    assert "Session is closed" in result.detail


@pytest.mark.asyncio
async def test_watch_survives_unexpected_failure() -> None:
    http = FakeHttpSession(replies=[RuntimeError("Session is closed")])
    http.reply({"lat": 37.5, "lon": 127.0})
    source = _source(http, poll_interval_s=0.01)
    errors: list[TrackingErrorKind] = []
    tracker = PositionTracker(
        source,
        options=FRESH,
        on_change=lambda state: errors.append(state.error.kind) if state.error is not None else None,
    )

    tracker.start_watching()
    await asyncio.sleep(0.05)
    await source.aclose()

    assert errors == [TrackingErrorKind.POSITION_UNAVAILABLE]
    assert len(http.calls) >= 2
    assert tracker.error is None
    assert tracker.position is not None
    assert tracker.position.latitude == 37.5

def test_from_config() -> None:
    config = StoreLocatorConfig(lookup_url=LOOKUP_URL, lookup_poll_interval_s=5, default_accuracy_m=100)
    source = HttpPositionSource.from_config(FakeHttpSession(), config)  # type: ignore[arg-type]

    assert source.available
