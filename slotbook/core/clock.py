# slotbook/core/clock.py
"""
Clock collaborators.

Services never read the wall clock themselves; a Clock is injected so that
availability, horizons and the completion sweep are deterministic in tests.
All datetimes handed out are timezone-aware in the gym's local zone.
"""

from datetime import date, datetime, timedelta
import threading
from typing import Optional, Protocol, runtime_checkable

import pytz

from .config import settings


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""
        ...


def get_gym_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    return pytz.timezone(name or settings.timezone)


def localize(naive: datetime, tz_name: Optional[str] = None) -> datetime:
    """Attach the gym timezone to a naive local datetime."""
    return get_gym_timezone(tz_name).localize(naive)


class SystemClock:
    """Wall clock in the configured gym timezone."""

    def __init__(self, tz_name: Optional[str] = None) -> None:
        self._tz = get_gym_timezone(tz_name)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, current: datetime, tz_name: Optional[str] = None) -> None:
        self._tz = get_gym_timezone(tz_name)
        if current.tzinfo is None:
            current = self._tz.localize(current)
        self._current = current
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def today(self) -> date:
        return self.now().date()

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = self._tz.localize(current)
        with self._lock:
            self._current = current

    def advance(self, **kwargs: float) -> datetime:
        with self._lock:
            self._current = self._tz.normalize(self._current + timedelta(**kwargs))
            return self._current
