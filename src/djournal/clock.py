"""Clock abstraction so day boundaries and timers can be tested with frozen time."""

from __future__ import annotations

from datetime import datetime, timedelta


class Clock:
    """Wall clock in server-local time."""

    def now(self) -> datetime:
        """Current local time with timezone info."""
        return datetime.now().astimezone()

    def today(self) -> str:
        """Current local calendar date as YYYY-MM-DD."""
        return self.now().date().isoformat()

    def now_ms(self) -> int:
        """Current time as epoch milliseconds."""
        return int(self.now().timestamp() * 1000)


SystemClock = Clock


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            current = current.astimezone()
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.astimezone()
        self.current = current

    def advance(self, **kwargs) -> None:
        """Move forward by a timedelta given as keyword arguments (days=1, seconds=5, ...)."""
        self.current = self.current + timedelta(**kwargs)
