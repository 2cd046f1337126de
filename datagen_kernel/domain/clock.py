"""
Injectable time source.

Checkpoint stores stamp snapshots with ``clock.now()`` and the controller
judges staleness against the same clock, so the recovery window can be
tested by moving a DeterministicClock instead of sleeping.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current time.  ``now()`` is always timezone-aware UTC."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock that only moves when told to."""

    def __init__(self, fixed_time: datetime | None = None):
        start = fixed_time or DEFAULT_TEST_TIME
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float | timedelta = 1) -> datetime:
        """Move forward by ``seconds`` (or a timedelta) and return the new time."""
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        self._now += step
        return self._now
