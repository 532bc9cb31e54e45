"""Date provider used for license status computations."""
from datetime import date, datetime, timezone


class Clock:
    """Returns the current UTC date."""

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock(Clock):
    """Clock pinned to a given date (scripts, tests, back-dated reports)."""

    def __init__(self, current: date):
        self._current = current

    def today(self) -> date:
        return self._current


system_clock = Clock()
