"""Delay scheduling capability used by the stabilizer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol


class Scheduler(Protocol):
    """Structural timer interface.

    Having a protocol here makes it easy to pass a manual clock in tests
    while keeping the production implementation (`LoopScheduler`) concrete.
    """

    def after(self, delay_ms: int, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class LoopScheduler:
    """Scheduler backed by ``asyncio`` ``call_later``.

    The event loop is resolved on first use, so instances may be created
    outside a running loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def after(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop.call_later(max(0, delay_ms) / 1000.0, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
