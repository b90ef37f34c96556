"""storelocator - Position tracking and debounced search for store locators."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("storelocator")
except PackageNotFoundError:
    __version__ = "0+local"
from storelocator.config import StoreLocatorConfig, TrackingOptions
from storelocator.exceptions import (
    PositionSourceError,
    PositionTransportError,
    StoreLocatorConfigError,
    StoreLocatorError,
)
from storelocator.geo import distance_meters, format_distance, nearby_stores, rank_by_distance
from storelocator.models import (
    Position,
    SensorErrorCode,
    Store,
    TrackerState,
    TrackingError,
    TrackingErrorKind,
)
from storelocator.scheduler import LoopScheduler, Scheduler
from storelocator.search import QueryDispatcher
from storelocator.sources import PositionSource
from storelocator.sources.http import HttpPositionSource
from storelocator.stabilizer import ValueStabilizer
from storelocator.tracker import PositionTracker, WatchHandle

__all__ = [
    "__version__",
    "HttpPositionSource",
    "LoopScheduler",
    "Position",
    "PositionSource",
    "PositionSourceError",
    "PositionTracker",
    "PositionTransportError",
    "QueryDispatcher",
    "Scheduler",
    "SensorErrorCode",
    "Store",
    "StoreLocatorConfig",
    "StoreLocatorConfigError",
    "StoreLocatorError",
    "TrackerState",
    "TrackingError",
    "TrackingErrorKind",
    "TrackingOptions",
    "ValueStabilizer",
    "WatchHandle",
    "distance_meters",
    "format_distance",
    "nearby_stores",
    "rank_by_distance",
]
