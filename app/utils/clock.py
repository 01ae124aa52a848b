# app/utils/clock.py
"""Clock used for timestamps and time-based booking guards"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """FastAPI dependency returning the clock; overridden in tests"""
    return utcnow
