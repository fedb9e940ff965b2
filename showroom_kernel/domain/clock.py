"""
Injectable time source.

Confirmation timeouts, retention and invoice timestamps all read the time
through a Clock, so tests can step it forward instead of sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

EPOCH_FOR_TESTS = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock:
    """Stands still until ``advance()`` moves it."""

    def __init__(self, start: datetime = EPOCH_FOR_TESTS):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1) -> None:
        self._now += timedelta(seconds=seconds)
