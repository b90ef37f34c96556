"""Custom exception hierarchy for storelocator."""

from __future__ import annotations

from storelocator.models.errors import SensorErrorCode


class StoreLocatorError(Exception):
    """Base exception for all storelocator errors."""


class StoreLocatorConfigError(StoreLocatorError):
    """Invalid or missing configuration."""


class PositionSourceError(StoreLocatorError):
    """A position source could not produce a fix.

    Sources hand this to the tracker's error callback instead of raising
    it; the tracker maps ``code`` onto a :class:`TrackingErrorKind`.
    """

    def __init__(
        self,
        message: str,
        *,
        code: SensorErrorCode | int = SensorErrorCode.UNKNOWN,
    ) -> None:
        self.code = SensorErrorCode(code)
        super().__init__(message)


class PositionTransportError(PositionSourceError):
    """HTTP-level failure of a network position source (non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        code: SensorErrorCode | int = SensorErrorCode.POSITION_UNAVAILABLE,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message, code=code)
