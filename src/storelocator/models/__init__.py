"""Data models for storelocator."""

from storelocator.models._base import StoreLocatorModel
from storelocator.models.errors import SensorErrorCode, TrackingError, TrackingErrorKind, kind_for_code
from storelocator.models.position import Position
from storelocator.models.state import TrackerState
from storelocator.models.store import Store

__all__ = [
    "Position",
    "SensorErrorCode",
    "Store",
    "StoreLocatorModel",
    "TrackerState",
    "TrackingError",
    "TrackingErrorKind",
    "kind_for_code",
]
