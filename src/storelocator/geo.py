"""Great-circle distance and store ranking helpers."""

from __future__ import annotations

import math
from collections.abc import Iterable

from storelocator.config import StoreLocatorConfig
from storelocator.models.position import Position
from storelocator.models.store import Store

#: Mean Earth radius in meters (spherical model).
EARTH_RADIUS_M = 6_371_000.0


def _check_coordinate(name: str, value: float, limit: float) -> float:
    if not math.isfinite(value) or abs(value) > limit:
        raise ValueError(f"{name} must be a finite value within ±{limit:g}, got {value!r}")
    return float(value)


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Haversine distance between two points, rounded to whole meters.

    Symmetric in its two points and zero for coincident points. The
    haversine term is clamped to [0, 1] so rounding error near the
    antipode cannot push ``asin`` outside its domain.

    Raises
    ------
    ValueError
        If a coordinate is not finite or lies outside the lat/lng range.
    """
    phi1 = math.radians(_check_coordinate("lat1", lat1, 90.0))
    phi2 = math.radians(_check_coordinate("lat2", lat2, 90.0))
    d_phi = phi2 - phi1
    d_lambda = math.radians(_check_coordinate("lng2", lng2, 180.0) - _check_coordinate("lng1", lng1, 180.0))

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    h = min(1.0, max(0.0, h))
    return round(2 * EARTH_RADIUS_M * math.asin(math.sqrt(h)))


def format_distance(meters: float | None) -> str:
    """Format a distance for display: ``"850m"`` below a kilometer, ``"1.2km"`` above."""
    if meters is None or not math.isfinite(meters):
        return "0m"
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"


def rank_by_distance(
    stores: Iterable[Store],
    origin: Position,
    *,
    radius_km: float | None = None,
) -> list[Store]:
    """Return copies of *stores* with ``distance_m`` set, nearest first.

    Ties are broken by name. Stores without coordinates keep whatever
    distance the API sent and go last in their input order; they are
    never dropped by the radius filter since their distance is unknown
    to us.
    """
    ranked: list[Store] = []
    unplaced: list[Store] = []
    limit_m = radius_km * 1000 if radius_km is not None else None

    for store in stores:
        if store.latitude is None or store.longitude is None:
            unplaced.append(store)
            continue
        distance = distance_meters(origin.latitude, origin.longitude, store.latitude, store.longitude)
        if limit_m is not None and distance > limit_m:
            continue
        ranked.append(store.model_copy(update={"distance_m": distance}))

    ranked.sort(key=lambda store: (store.distance_m, store.name))
    return ranked + unplaced


def nearby_stores(stores: Iterable[Store], origin: Position, config: StoreLocatorConfig) -> list[Store]:
    """Rank *stores* around *origin* within the configured nearby radius."""
    return rank_by_distance(stores, origin, radius_km=config.nearby_radius_km)
