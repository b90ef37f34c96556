"""Sensor error codes and the normalized tracking error."""

from __future__ import annotations

import enum
from enum import StrEnum

from pydantic import Field

from storelocator.models._base import StoreLocatorModel, now_ms


class SensorErrorCode(enum.IntEnum):
    """Error codes reported by a position source.

    Values follow the browser geolocation API. Codes without a mapped
    member resolve to ``UNKNOWN`` instead of raising ``ValueError``.
    """

    UNKNOWN = -1
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    @classmethod
    def _missing_(cls, value: object) -> SensorErrorCode:
        return cls.UNKNOWN


class TrackingErrorKind(StrEnum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


_KIND_BY_CODE: dict[SensorErrorCode, TrackingErrorKind] = {
    SensorErrorCode.PERMISSION_DENIED: TrackingErrorKind.PERMISSION_DENIED,
    SensorErrorCode.POSITION_UNAVAILABLE: TrackingErrorKind.POSITION_UNAVAILABLE,
    SensorErrorCode.TIMEOUT: TrackingErrorKind.TIMEOUT,
}


def kind_for_code(code: SensorErrorCode | int) -> TrackingErrorKind:
    """Map a host sensor error code onto a :class:`TrackingErrorKind`."""
    return _KIND_BY_CODE.get(SensorErrorCode(code), TrackingErrorKind.UNKNOWN)


class TrackingError(StoreLocatorModel):
    """A failed position read, exposed as tracker state.

    Parameters
    ----------
    kind : TrackingErrorKind
        Normalized failure category.
    message : str
        Human-readable, localized message for ``kind``.
    detail : str or None
        The source's own description of the failure, if any.
    occurred_at_epoch_ms : int
        When the failure was recorded.
    """

    kind: TrackingErrorKind
    message: str
    detail: str | None = None
    occurred_at_epoch_ms: int = Field(default_factory=now_ms)
