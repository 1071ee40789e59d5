"""
Clock sources. Endpoints receive a Clock through the get_clock dependency so
tests can pin or advance time without patching datetime.
"""
from datetime import datetime, timedelta
from typing import Optional, Protocol

from storeclock.utils.datetime_utils import now_utc, ensure_utc


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock backed by the server time."""

    def now(self) -> datetime:
        return now_utc()


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start is not None else now_utc()

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move forward by `seconds` plus any timedelta keyword arguments."""
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now


system_clock = SystemClock()


def get_clock() -> Clock:
    """Dependency returning the process clock"""
    return system_clock
