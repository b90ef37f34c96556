"""Debounced value holder.

A :class:`ValueStabilizer` turns a fast stream of raw values into a slow
stream of settled ones: each change re-arms a quiet-period timer and only
the value present when the timer finally fires is committed. Values
superseded inside the quiet window are dropped, never queued.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from storelocator.scheduler import LoopScheduler, Scheduler

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class ValueStabilizer(Generic[T]):
    """Hold the latest raw value and the latest settled value.

    Parameters
    ----------
    initial
        Starting value. ``stable`` equals it immediately, with no delay.
    quiet_period_ms
        Time without a new raw value before it is committed. ``0``
        commits synchronously on every change.
    scheduler
        Timer capability. Defaults to a :class:`LoopScheduler`.
    on_settle
        Called with each newly committed stable value.
    """

    def __init__(
        self,
        initial: T,
        quiet_period_ms: int,
        *,
        scheduler: Scheduler | None = None,
        on_settle: Callable[[T], None] | None = None,
    ) -> None:
        if quiet_period_ms < 0:
            raise ValueError(f"quiet_period_ms must be >= 0, got {quiet_period_ms}")
        self._scheduler: Scheduler = scheduler if scheduler is not None else LoopScheduler()
        self._on_settle = on_settle
        self._quiet_period_ms = quiet_period_ms
        self._raw: T = initial
        self._stable: T = initial
        self._timer: Any = None
        # Bumped on every arm/cancel; a firing timer whose generation is
        # no longer current is inert.
        self._generation = 0
        self._closed = False

    @property
    def raw(self) -> T:
        return self._raw

    @property
    def stable(self) -> T:
        return self._stable

    @property
    def quiet_period_ms(self) -> int:
        return self._quiet_period_ms

    @property
    def pending(self) -> bool:
        """Whether a commit is waiting for the quiet period to elapse."""
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self, value: T, quiet_period_ms: int | None = None) -> T:
        """Record a raw value and return the current stable value.

        Re-observing the current raw value with the current period does
        nothing; any other call cancels the armed timer and arms a new one.
        """
        if self._closed:
            _logger.debug("Ignoring value observed after close")
            return self._stable

        period = self._quiet_period_ms if quiet_period_ms is None else quiet_period_ms
        if period < 0:
            raise ValueError(f"quiet_period_ms must be >= 0, got {period}")
        if value == self._raw and period == self._quiet_period_ms:
            return self._stable

        self._raw = value
        self._quiet_period_ms = period
        self._cancel_timer()

        if period == 0:
            self._commit(value)
            return self._stable

        self._generation += 1
        generation = self._generation
        self._timer = self._scheduler.after(period, lambda: self._fire(generation))
        return self._stable

    def flush(self) -> T:
        """Commit the pending raw value now instead of waiting."""
        if self._closed:
            return self._stable
        if self._timer is not None:
            self._cancel_timer()
            self._commit(self._raw)
        return self._stable

    def close(self) -> None:
        """Cancel any pending commit. Later timer firings are discarded."""
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()

    def __enter__(self) -> ValueStabilizer[T]:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _cancel_timer(self) -> None:
        self._generation += 1
        timer = self._timer
        self._timer = None
        if timer is not None:
            self._scheduler.cancel(timer)

    def _fire(self, generation: int) -> None:
        if self._closed or generation != self._generation:
            _logger.debug("Discarding stale stabilizer timer (generation=%d)", generation)
            return
        self._timer = None
        self._commit(self._raw)

    def _commit(self, value: T) -> None:
        if value == self._stable:
            return
        self._stable = value
        if self._on_settle is None:
            return
        try:
            self._on_settle(value)
        except Exception:
            _logger.warning("Stabilizer settle callback failed", exc_info=True)
