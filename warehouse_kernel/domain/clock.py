"""
Time source for stock events.

The event recorder asks a Clock for ``occurred_at`` instead of reading the
system time itself, so tests can pin the timestamps written to
``stock_events``.  ``SystemClock`` is the only implementation that touches
the real clock.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """``now()`` always returns a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


def _require_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        raise ValueError(f"Clock time must be timezone-aware, got {moment!r}")
    return moment.astimezone(UTC)


class DeterministicClock(Clock):
    """Frozen clock for tests; moves only through ``advance`` or ``set_time``."""

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(
            fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        )

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = _require_aware(moment)

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)
