"""Position source capability.

A position source is whatever the host offers for locating the user: a
browser geolocation bridge, a GPS daemon, an IP lookup. The tracker only
talks to this interface, so tests can drive it with a scripted double.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable
from typing import Protocol

from storelocator.config import TrackingOptions
from storelocator.exceptions import PositionSourceError
from storelocator.models.position import Position

FixCallback = Callable[[Position], None]
ErrorCallback = Callable[[PositionSourceError], None]


class PositionSource(Protocol):
    """Structural interface for one-shot and continuous position reads.

    Callbacks may fire synchronously from inside ``request_once``/``watch``
    or later from the event loop. A source reports failures through
    ``on_error`` rather than by raising.
    """

    @property
    def available(self) -> bool: ...

    def request_once(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> None: ...

    def watch(self, on_fix: FixCallback, on_error: ErrorCallback, options: TrackingOptions) -> Hashable: ...

    def cancel_watch(self, watch_id: Hashable) -> None: ...


__all__ = ["ErrorCallback", "FixCallback", "PositionSource"]
