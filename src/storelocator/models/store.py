"""Store summary model used by the locator list."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from storelocator.models._base import StoreLocatorModel


class Store(StoreLocatorModel):
    """A convenience store as returned by the store API.

    ``distance_m`` is filled in by :func:`storelocator.geo.rank_by_distance`;
    API payloads may also carry a server-computed ``distance``.
    """

    id: str
    name: str
    address: str = ""
    phone: str | None = None
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(
        default=None,
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )
    is_open: bool = True
    services: tuple[str, ...] = ()
    distance_m: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("distance_m", "distanceM", "distance"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
