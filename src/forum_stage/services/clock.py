"""Injectable time sources for the session and reaction services."""

from __future__ import annotations

from datetime import datetime, timedelta
from threading import Lock
from typing import Protocol

from forum_stage.db.time import as_utc, utcnow


class Clock(Protocol):
    """Anything that can report the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time from the host."""

    def now(self) -> datetime:
        return utcnow()


class FrozenClock:
    """Manually advanced clock used by tests and replay tooling."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = as_utc(start) if start is not None else utcnow()
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by ``delta`` and return the new time."""
        with self._lock:
            self._now = self._now + delta
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = as_utc(value)


system_clock = SystemClock()
