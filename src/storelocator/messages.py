"""User-facing messages for tracking errors.

Each :class:`TrackingErrorKind` has a distinct message per language so
a permission failure never reads like a timeout.
"""

from __future__ import annotations

from storelocator.models.errors import TrackingErrorKind

DEFAULT_LANGUAGE = "en"

ERROR_MESSAGES: dict[str, dict[TrackingErrorKind, str]] = {
    "en": {
        TrackingErrorKind.PERMISSION_DENIED: "Location access was denied.",
        TrackingErrorKind.POSITION_UNAVAILABLE: "Location information is unavailable.",
        TrackingErrorKind.TIMEOUT: "The location request timed out.",
        TrackingErrorKind.UNSUPPORTED: "Location services are not supported on this device.",
        TrackingErrorKind.UNKNOWN: "An unknown error occurred while getting your location.",
    },
    "ko": {
        TrackingErrorKind.PERMISSION_DENIED: "위치 접근 권한이 거부되었습니다.",
        TrackingErrorKind.POSITION_UNAVAILABLE: "위치 정보를 사용할 수 없습니다.",
        TrackingErrorKind.TIMEOUT: "위치 정보 요청이 시간 초과되었습니다.",
        TrackingErrorKind.UNSUPPORTED: "이 브라우저는 위치 서비스를 지원하지 않습니다.",
        TrackingErrorKind.UNKNOWN: "알 수 없는 오류가 발생했습니다.",
    },
}


def error_message(kind: TrackingErrorKind, language: str = DEFAULT_LANGUAGE) -> str:
    """Return the message for *kind*, falling back to English for unknown languages."""
    catalog = ERROR_MESSAGES.get(language.strip().lower()) or ERROR_MESSAGES[DEFAULT_LANGUAGE]
    return catalog[kind]
