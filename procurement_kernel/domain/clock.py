"""
Injectable time sources.

Engines and services never call ``datetime.now()``.  Each accepts an
optional explicit timestamp and otherwise asks the Clock it was built with,
so audit timestamps, version timestamps and dwell-time calculations can be
pinned in tests.

Failure modes:
    - SequentialClock raises RuntimeError once its list is used up.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def as_utc(value: datetime) -> datetime:
    """Aware UTC copy of ``value``; a naive value is taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Clock(ABC):
    """Source of timezone-aware ``datetime`` values."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance``,
    ``advance_days``, ``tick`` or ``set_time`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)

    def tick(self) -> datetime:
        """Move forward one second and return the new instant."""
        self.advance(1)
        return self._current


class SequentialClock(Clock):
    """Returns the given instants in order, one per ``now()`` call."""

    def __init__(self, times: Iterable[datetime]):
        self._times = iter(list(times))
        self._calls = 0

    def now(self) -> datetime:
        try:
            value = next(self._times)
        except StopIteration:
            raise RuntimeError(
                f"SequentialClock exhausted after {self._calls} calls"
            ) from None
        self._calls += 1
        return value
