"""
Injectable time source.

Overdue sweeps, payment timestamps, duplicate-invoice dates, recurring
materialisation and the heuristic scorers all ask a ``Clock`` for "now".
Nothing else in the codebase reads the wall clock, so a fixed clock and
identical history reproduce identical results.

"Today" is always the UTC calendar date.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

SECONDS_PER_DAY = 86400


def _as_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC already
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """
    Contract:
        ``now()`` and ``now_utc()`` return timezone-aware datetimes;
        ``today()`` is derived from ``now_utc()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return _as_utc(self.now())

    def today(self) -> date:
        return self.now_utc().date()


class SystemClock(Clock):
    """Wall-clock time; the only place ``datetime.now`` is called."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Tests pin it to a business date; batch tasks pin one to the run's
    ``as_of`` instant so every item of a run shares the same "today".
    """

    DEFAULT_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _as_utc(fixed_time or self.DEFAULT_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _as_utc(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self.advance(days * SECONDS_PER_DAY)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance()
        return self._current
