"""
Clock -- injectable source of "now".

Store, service and selector code never call ``datetime.now()``; they ask
the Clock they were given.  Every created_at, updated_at and paid_at stamp
comes from here, which is what lets tests pin a row to one second before
a month boundary.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current instant.  ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` is called.  A naive start time is read as UTC.
    """

    DEFAULT_START = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._now = self._aware(fixed_time or self.DEFAULT_START)

    @staticmethod
    def _aware(moment: datetime) -> datetime:
        return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = self._aware(time)

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new instant."""
        self._now += timedelta(seconds=seconds)
        return self._now
