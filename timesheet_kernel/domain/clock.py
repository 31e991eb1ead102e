"""
Injectable time source.

Services never call ``datetime.now()`` themselves.  Submission, decision,
history and chat timestamps all come from the Clock handed to
TimesheetWorkflow, so review scenarios replay with exact times in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

# Noon on the Monday the test week starts.
DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware "now" values."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so everything written
    in one operation shares a timestamp.  Tests call ``advance()`` wherever
    ordering by time matters (inbox order, chat order).
    """

    def __init__(self, start: datetime = DEFAULT_TEST_TIME):
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float | timedelta = 1) -> datetime:
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        if step < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += step
        return self._current
