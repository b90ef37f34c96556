"""Position snapshot model."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from storelocator.models._base import StoreLocatorModel, now_ms

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


class Position(StoreLocatorModel):
    """An immutable location fix.

    Replaced wholesale on every successful read; never partially updated.

    Parameters
    ----------
    latitude : float
        Latitude in degrees, within [-90, 90].
    longitude : float
        Longitude in degrees, within [-180, 180].
    accuracy_meters : float
        Radius of the 68% confidence circle, in meters.
    captured_at_epoch_ms : int
        When the fix was taken, epoch milliseconds.
    """

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )
    accuracy_meters: float = Field(
        default=0.0,
        ge=0.0,
        validation_alias=AliasChoices("accuracy_meters", "accuracyMeters", "accuracy"),
    )
    captured_at_epoch_ms: int = Field(
        default_factory=now_ms,
        validation_alias=AliasChoices("captured_at_epoch_ms", "capturedAtEpochMs", "timestamp"),
    )

    @field_validator("captured_at_epoch_ms", mode="before")
    @classmethod
    def _coerce_epoch_ms(cls, value: Any) -> Any:
        """Accept epoch seconds as well as milliseconds."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if not math.isfinite(value):
                raise ValueError(f"timestamp must be finite, got {value!r}")
            ts = int(value)
            return ts if ts >= _MS_THRESHOLD else ts * 1000
        return value

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.captured_at_epoch_ms / 1000, tz=UTC)

    def age_ms(self, now_epoch_ms: int | None = None) -> int:
        """Milliseconds elapsed since the fix was captured."""
        current = now_ms() if now_epoch_ms is None else now_epoch_ms
        return max(0, current - self.captured_at_epoch_ms)
