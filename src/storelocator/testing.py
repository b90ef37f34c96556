"""Deterministic doubles for the scheduler and position-source capabilities.

Both doubles are driven explicitly by the test: nothing happens until the
test advances the clock or tells the source to answer.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field

from storelocator.config import TrackingOptions
from storelocator.exceptions import PositionSourceError
from storelocator.models.errors import SensorErrorCode
from storelocator.models.position import Position
from storelocator.sources import ErrorCallback, FixCallback


@dataclass(order=True)
class _Timer:
    due_ms: int
    seq: int
    callback: Callable[[], None] = field(compare=False)


class ManualScheduler:
    """Scheduler with a virtual millisecond clock moved by :meth:`advance`."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._seq = itertools.count()
        self._timers: dict[int, _Timer] = {}
        self.cancelled = 0

    def after(self, delay_ms: int, callback: Callable[[], None]) -> int:
        timer = _Timer(due_ms=self.now_ms + max(0, delay_ms), seq=next(self._seq), callback=callback)
        self._timers[timer.seq] = timer
        return timer.seq

    def cancel(self, handle: int) -> None:
        if self._timers.pop(handle, None) is not None:
            self.cancelled += 1

    @property
    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self.now_ms + ms
        while True:
            due = [timer for timer in self._timers.values() if timer.due_ms <= target]
            if not due:
                break
            timer = min(due)
            del self._timers[timer.seq]
            self.now_ms = timer.due_ms
            timer.callback()
        self.now_ms = target


@dataclass
class _Subscription:
    on_fix: FixCallback
    on_error: ErrorCallback
    options: TrackingOptions
    cancelled: bool = False


class ScriptedPositionSource:
    """Position source answered by the test.

    Callbacks stay reachable after :meth:`cancel_watch` so a test can
    simulate a sensor that fires late, racing the release.
    """

    def __init__(self, *, available: bool = True) -> None:
        self._available = available
        self._ids = itertools.count(1)
        self.requests: list[_Subscription] = []
        self.watches: dict[int, _Subscription] = {}

    @property
    def available(self) -> bool:
        return self._available

    @available.setter
    def available(self, value: bool) -> None:
        self._available = value

    def request_once(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> None:
        self.requests.append(_Subscription(on_fix, on_error, options))

    def watch(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> int:
        watch_id = next(self._ids)
        self.watches[watch_id] = _Subscription(on_fix, on_error, options)
        return watch_id

    def cancel_watch(self, watch_id: int) -> None:
        subscription = self.watches.get(watch_id)
        if subscription is not None:
            subscription.cancelled = True

    @property
    def active_watch_ids(self) -> list[int]:
        return [watch_id for watch_id, sub in self.watches.items() if not sub.cancelled]

    def succeed(self, position: Position) -> None:
        """Answer the oldest outstanding one-shot request with a fix."""
        self.requests.pop(0).on_fix(position)

    def fail(self, code: SensorErrorCode | int, message: str = "") -> None:
        """Answer the oldest outstanding one-shot request with an error."""
        self.requests.pop(0).on_error(PositionSourceError(message, code=code))

    def emit(self, watch_id: int, position: Position) -> None:
        self.watches[watch_id].on_fix(position)

    def emit_error(self, watch_id: int, code: SensorErrorCode | int, message: str = "") -> None:
        self.watches[watch_id].on_error(PositionSourceError(message, code=code))
