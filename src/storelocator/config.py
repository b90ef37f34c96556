"""Configuration for storelocator."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from storelocator.exceptions import StoreLocatorConfigError

#: Public IP-geolocation endpoint used by :class:`HttpPositionSource`.
DEFAULT_LOOKUP_URL = "https://ipapi.co/json/"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise StoreLocatorConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class TrackingOptions:
    """Options passed to a position source with every read.

    Parameters
    ----------
    high_accuracy : bool
        Ask the source for its most precise fix (GPS rather than network).
    timeout_ms : int
        Upper bound the source may spend on one fix. Enforced by the
        source itself; the tracker adds no second timeout.
    max_cache_age_ms : int
        Age of a cached fix the source may return instead of reading
        the sensor again. ``0`` forces a fresh read.
    """

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_cache_age_ms: int = 300_000

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise StoreLocatorConfigError(f"timeout_ms must be >= 0, got {self.timeout_ms}")
        if self.max_cache_age_ms < 0:
            raise StoreLocatorConfigError(f"max_cache_age_ms must be >= 0, got {self.max_cache_age_ms}")


@dataclasses.dataclass(frozen=True)
class StoreLocatorConfig:
    """Library configuration.

    Parameters
    ----------
    language : str
        Language of tracking error messages (``"en"`` or ``"ko"``).
    tracking : TrackingOptions
        Default options for position reads.
    search_quiet_period_ms : int
        Debounce quiet period applied to search input.
    search_min_length : int
        Minimum stripped query length before a search is dispatched.
    nearby_radius_km : float
        Radius used when listing nearby stores.
    lookup_url : str
        IP-geolocation endpoint for :class:`HttpPositionSource`.
    lookup_poll_interval_s : float
        Seconds between lookups while an HTTP watch is active.
    default_accuracy_m : float
        Accuracy reported for lookup responses that carry none.
    """

    language: str = "en"
    tracking: TrackingOptions = dataclasses.field(default_factory=TrackingOptions)
    search_quiet_period_ms: int = 300
    search_min_length: int = 2
    nearby_radius_km: float = 5.0
    lookup_url: str = DEFAULT_LOOKUP_URL
    lookup_poll_interval_s: float = 30.0
    default_accuracy_m: float = 5_000.0

    def __post_init__(self) -> None:
        if self.search_quiet_period_ms < 0:
            raise StoreLocatorConfigError(
                f"search_quiet_period_ms must be >= 0, got {self.search_quiet_period_ms}"
            )
        if self.search_min_length < 0:
            raise StoreLocatorConfigError(f"search_min_length must be >= 0, got {self.search_min_length}")
        if self.nearby_radius_km <= 0:
            raise StoreLocatorConfigError(f"nearby_radius_km must be > 0, got {self.nearby_radius_km}")
        if self.lookup_poll_interval_s <= 0:
            raise StoreLocatorConfigError(
                f"lookup_poll_interval_s must be > 0, got {self.lookup_poll_interval_s}"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreLocatorConfig:
        """Create configuration from ``STORELOCATOR_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        StoreLocatorConfig
            Populated configuration.

        Raises
        ------
        StoreLocatorConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        tracking_kwargs: dict[str, Any] = {}
        tracking_overrides = overrides.pop("tracking", None)
        if isinstance(tracking_overrides, TrackingOptions):
            tracking_kwargs = dataclasses.asdict(tracking_overrides)
        else:
            high_accuracy = env.get("STORELOCATOR_HIGH_ACCURACY")
            if high_accuracy is not None:
                tracking_kwargs["high_accuracy"] = _env_bool(high_accuracy, True)
            for env_key, field_name in (
                ("STORELOCATOR_TIMEOUT_MS", "timeout_ms"),
                ("STORELOCATOR_MAX_CACHE_AGE_MS", "max_cache_age_ms"),
            ):
                value = _env_number(env, env_key, int)
                if value is not None:
                    tracking_kwargs[field_name] = value
            # Allow overriding tracking fields via a nested dict
            if isinstance(tracking_overrides, dict):
                tracking_kwargs.update(tracking_overrides)

        config_kwargs: dict[str, Any] = {"tracking": TrackingOptions(**tracking_kwargs)}

        language = env.get("STORELOCATOR_LANGUAGE")
        if language is not None:
            config_kwargs["language"] = language.strip()
        lookup_url = env.get("STORELOCATOR_LOOKUP_URL")
        if lookup_url is not None:
            config_kwargs["lookup_url"] = lookup_url.strip()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "STORELOCATOR_SEARCH_QUIET_PERIOD_MS": ("search_quiet_period_ms", int),
            "STORELOCATOR_SEARCH_MIN_LENGTH": ("search_min_length", int),
            "STORELOCATOR_NEARBY_RADIUS_KM": ("nearby_radius_km", float),
            "STORELOCATOR_LOOKUP_POLL_INTERVAL_S": ("lookup_poll_interval_s", float),
            "STORELOCATOR_DEFAULT_ACCURACY_M": ("default_accuracy_m", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            if field_name in overrides:
                continue
            value = _env_number(env, env_key, cast)
            if value is not None:
                config_kwargs[field_name] = value

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
