"""Tests for Pydantic model parsing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from storelocator.exceptions import PositionSourceError, PositionTransportError
from storelocator.messages import ERROR_MESSAGES, error_message
from storelocator.models.errors import SensorErrorCode, TrackingError, TrackingErrorKind, kind_for_code
from storelocator.models.position import Position
from storelocator.models.store import Store

# ------------------------------------------------------------------
# Position
# ------------------------------------------------------------------


class TestPosition:
    def test_parses_short_aliases(self) -> None:
        position = Position.model_validate({"lat": 37.5, "lng": 127.0, "accuracy": 15, "timestamp": 1_770_928_447_000})

        assert position.latitude == 37.5
        assert position.longitude == 127.0
        assert position.accuracy_meters == 15.0
        assert position.captured_at_epoch_ms == 1_770_928_447_000

    def test_parses_camel_case(self) -> None:
        position = Position.model_validate(
            {"latitude": 1.0, "longitude": 2.0, "accuracyMeters": 3.0, "capturedAtEpochMs": 1_770_928_447_000}
        )

        assert position.accuracy_meters == 3.0

    def test_epoch_seconds_promoted_to_milliseconds(self) -> None:
        position = Position(latitude=0.0, longitude=0.0, captured_at_epoch_ms=1_770_928_447)

        assert position.captured_at_epoch_ms == 1_770_928_447_000
        assert position.captured_at == datetime.fromtimestamp(1_770_928_447, tz=UTC)

    def test_is_frozen(self) -> None:
        position = Position(latitude=0.0, longitude=0.0)

        with pytest.raises(ValidationError):
            position.latitude = 1.0  # type: ignore[misc]

    @pytest.mark.parametrize(
        "payload",
        [
            {"latitude": 90.5, "longitude": 0.0},
            {"latitude": 0.0, "longitude": -180.5},
            {"latitude": 0.0, "longitude": 0.0, "accuracy": -1},
            {"latitude": "--", "longitude": 0.0},
            {"latitude": 0.0, "longitude": 0.0, "timestamp": float("inf")},
        ],
    )
    def test_rejects_invalid_payloads(self, payload: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            Position.model_validate(payload)

    def test_age_ms(self) -> None:
        position = Position(latitude=0.0, longitude=0.0, captured_at_epoch_ms=1_770_000_000_000)

        assert position.age_ms(1_770_000_002_500) == 2_500
        assert position.age_ms(1_769_999_999_000) == 0


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------


class TestSensorErrorCode:
    def test_unknown_value_falls_back(self) -> None:
        assert SensorErrorCode(99) == SensorErrorCode.UNKNOWN

    def test_browser_codes(self) -> None:
        assert SensorErrorCode(1) == SensorErrorCode.PERMISSION_DENIED
        assert SensorErrorCode(2) == SensorErrorCode.POSITION_UNAVAILABLE
        assert SensorErrorCode(3) == SensorErrorCode.TIMEOUT

    def test_kind_mapping(self) -> None:
        assert kind_for_code(1) == TrackingErrorKind.PERMISSION_DENIED
        assert kind_for_code(SensorErrorCode.TIMEOUT) == TrackingErrorKind.TIMEOUT
        assert kind_for_code(-1) == TrackingErrorKind.UNKNOWN


def test_source_error_normalizes_code() -> None:
    exc = PositionSourceError("denied", code=1)

    assert exc.code is SensorErrorCode.PERMISSION_DENIED
    assert str(exc) == "denied"


def test_transport_error_defaults_to_unavailable() -> None:
    exc = PositionTransportError("HTTP 500", status_code=500, url="https://lookup.example")

    assert exc.code is SensorErrorCode.POSITION_UNAVAILABLE
    assert exc.status_code == 500
    assert isinstance(exc, PositionSourceError)


def test_tracking_error_stamped() -> None:
    error = TrackingError(kind=TrackingErrorKind.TIMEOUT, message="timed out")

    assert error.detail is None
    assert error.occurred_at_epoch_ms > 0


def test_every_kind_has_a_message_per_language() -> None:
    for catalog in ERROR_MESSAGES.values():
        assert set(catalog) == set(TrackingErrorKind)
        assert len(set(catalog.values())) == len(TrackingErrorKind)


def test_unknown_language_falls_back_to_english() -> None:
    assert error_message(TrackingErrorKind.TIMEOUT, "fr") == ERROR_MESSAGES["en"][TrackingErrorKind.TIMEOUT]


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------


class TestStore:
    def test_parses_api_payload(self) -> None:
        store = Store.model_validate(
            {
                "id": 1,
                "name": "GS25 Gangnam",
                "address": "123 Teheran-ro",
                "phone": "02-1234-5678",
                "lat": 37.498,
                "lng": 127.0276,
                "distance": 200,
                "isOpen": True,
                "services": ["ATM", "parcel"],
            }
        )

        assert store.id == "1"
        assert store.latitude == 37.498
        assert store.distance_m == 200
        assert store.is_open is True
        assert store.services == ("ATM", "parcel")
        assert store.has_coordinates

    def test_placeholders_use_defaults(self) -> None:
        store = Store.model_validate({"id": "7", "name": "CU Yeoksam", "phone": "--", "lat": ""})

        assert store.phone is None
        assert store.latitude is None
        assert not store.has_coordinates
