"""Wall-clock source for expiry checks.

Learn: Every expiry decision (OTP, refresh token, access token) asks
a Clock for "now" instead of calling datetime.now() directly. In
production that's SystemClock; tests swap in a clock they can move
forward an hour without sleeping.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency — override in tests."""
    return system_clock
