"""Tracker state snapshot handed to change listeners."""

from __future__ import annotations

from storelocator.models._base import StoreLocatorModel
from storelocator.models.errors import TrackingError
from storelocator.models.position import Position


class TrackerState(StoreLocatorModel):
    position: Position | None = None
    error: TrackingError | None = None
    loading: bool = False
    active_watches: int = 0
