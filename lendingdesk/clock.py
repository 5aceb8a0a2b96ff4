"""Time sources for circulation logic.

Fine calculation, return classification and OTP expiry all ask a clock for the
current time instead of calling ``datetime.now()`` directly, so tests can pin
or advance time without waiting.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


class SystemClock:
    """Wall-clock time in the server's local timezone."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock(SystemClock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **delta) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        self.current = self.current + timedelta(**delta)
        return self.current
