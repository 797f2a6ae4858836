"""
clock.py - Clocks and period indexing

Classes:
- ManualClock: logical clock advanced explicitly (simulations, tests)
- SystemClock: wall-clock time in UTC
- PeriodClock: maps clock time to accounting period indices

Periods are resolved lazily. Nothing runs when a boundary passes; the next
call that asks for the current period simply gets the new index.
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from .core import Clock, ValidationError, DEFAULT_PERIOD_DURATION


class ManualClock:
    """
    Clock that only moves when told to.

    Example:
        clock = ManualClock(datetime(2025, 1, 1))
        clock.advance(timedelta(days=30))
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2025, 1, 1)

    def now(self) -> datetime:
        return self._now

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the clock to new_time. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._now}")
        self._now = new_time

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by delta and return the new time."""
        if delta < timedelta(0):
            raise ValueError(f"Cannot advance by a negative duration: {delta}")
        self._now = self._now + delta
        return self._now

    def __repr__(self) -> str:
        return f"ManualClock({self._now.isoformat()})"


class SystemClock:
    """Wall-clock time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class PeriodClock:
    """
    Derives the accounting period index from an external clock.

        period = floor((now - start) / duration)

    Pure and deterministic for a given clock reading.
    """

    def __init__(
        self,
        clock: Clock,
        start: Optional[datetime] = None,
        duration: timedelta = DEFAULT_PERIOD_DURATION,
    ):
        """
        Args:
            clock: Time source
            start: Beginning of period 0 (default: clock.now())
            duration: Length of every period, must be positive

        Raises:
            ValidationError: If duration is not positive
        """
        if duration <= timedelta(0):
            raise ValidationError(f"period duration must be positive, got {duration}")
        self.clock = clock
        self.start = start if start is not None else clock.now()
        self.duration = duration

    def now(self) -> datetime:
        return self.clock.now()

    def period_at(self, timestamp: datetime) -> int:
        """
        Period index containing timestamp.

        Raises:
            ValidationError: If timestamp is before the start of period 0
        """
        if timestamp < self.start:
            raise ValidationError(f"{timestamp} is before the first period start {self.start}")
        return (timestamp - self.start) // self.duration

    def current_period(self) -> int:
        return self.period_at(self.clock.now())

    def period_start(self, period: int) -> datetime:
        if period < 0:
            raise ValidationError(f"period must be non-negative, got {period}")
        return self.start + self.duration * period

    def period_end(self, period: int) -> datetime:
        """Exclusive end of the period (start of the next one)."""
        return self.period_start(period + 1)

    def period_bounds(self, period: int) -> Tuple[datetime, datetime]:
        return self.period_start(period), self.period_end(period)

    def __repr__(self) -> str:
        return f"PeriodClock(start={self.start.isoformat()}, duration={self.duration})"
