#!/usr/bin/env python3
"""Resolve the current position through the IP lookup source.

Prints the resolved fix (or the tracking error) and, when store
coordinates are given, the distance to that store.

Examples:
    python scripts/probe_lookup.py
    python scripts/probe_lookup.py --store 37.4980,127.0276 --language ko
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import aiohttp

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from storelocator import (  # noqa: E402
    HttpPositionSource,
    PositionTracker,
    StoreLocatorConfig,
    TrackingError,
    TrackingOptions,
    format_distance,
)


def _parse_point(raw: str) -> tuple[float, float]:
    lat, _, lng = raw.partition(",")
    try:
        return float(lat), float(lng)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected LAT,LNG, got {raw!r}") from exc


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {"tracking": TrackingOptions(timeout_ms=args.timeout_ms, max_cache_age_ms=0)}
    if args.language:
        overrides["language"] = args.language
    if args.url:
        overrides["lookup_url"] = args.url
    config = StoreLocatorConfig.from_env(**overrides)

    async with aiohttp.ClientSession() as http:
        source = HttpPositionSource.from_config(http, config)
        tracker = PositionTracker.from_config(source, config)
        result = await tracker.request_once()
        await source.aclose()

    if isinstance(result, TrackingError):
        print(f"error: {result.kind.value}: {result.message}")
        if result.detail:
            print(f"  detail: {result.detail}")
        return 1

    print(f"position: {result.latitude:.5f},{result.longitude:.5f} (±{result.accuracy_meters:.0f} m)")
    print(f"captured: {result.captured_at.isoformat()}")
    if args.store is not None:
        lat, lng = args.store
        distance = PositionTracker.distance_meters(result.latitude, result.longitude, lat, lng)
        print(f"distance to store: {format_distance(distance)} ({distance} m)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--store", type=_parse_point, help="store coordinates as LAT,LNG")
    parser.add_argument("--language", help="error message language (en, ko)")
    parser.add_argument("--url", help="lookup endpoint (default: STORELOCATOR_LOOKUP_URL or ipapi.co)")
    parser.add_argument("--timeout-ms", type=int, default=10_000)
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
