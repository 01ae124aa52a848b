# app/utils/time_util.py
"""
Conversions between "HH:MM" window times, dates and the offset-qualified
timestamps exchanged with clients.

All window times are naive local wall-clock values. The single configured
UTC_OFFSET is only used when a timestamp has to be produced or compared
against the real clock.
"""
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from app.config.settings import get_settings

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_TIMESTAMP_TIME_RE = re.compile(r"T(\d{2}):(\d{2})")
_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for an "HH:MM" string"""
    if not isinstance(value, str):
        raise ValueError(f"Invalid time value: {value!r}")
    match = _HHMM_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format, expected HH:MM: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_hhmm(minutes: int) -> str:
    """Inverse of parse_hhmm; minutes must fall within a single day"""
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_valid_hhmm(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_HHMM_RE.match(value))


def to_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date format, expected YYYY-MM-DD: {value!r}")


def time_to_timestamp(day: Union[str, date], hhmm: str, utc_offset: Optional[str] = None) -> str:
    """
    Build "YYYY-MM-DDTHH:MM:00<offset>" from a date and an "HH:MM" time.

    The offset defaults to the configured UTC_OFFSET.
    """
    parse_hhmm(hhmm)
    offset = utc_offset if utc_offset is not None else get_settings().UTC_OFFSET
    return f"{to_date(day).isoformat()}T{hhmm}:00{offset}"


def extract_time(value: str) -> str:
    """
    Return the "HH:MM" part of a timestamp. Plain "HH:MM" (or "HH:MM:SS")
    values are accepted as-is.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid time value: {value!r}")
    value = value.strip()

    if "T" in value:
        match = _TIMESTAMP_TIME_RE.search(value)
        if not match:
            raise ValueError(f"Invalid timestamp: {value!r}")
        hhmm = f"{match.group(1)}:{match.group(2)}"
    else:
        hhmm = value[:5]

    parse_hhmm(hhmm)
    return hhmm


def format_time(hhmm: str, use_12h: bool = False) -> str:
    """Display form of an "HH:MM" value: "9:00 AM" in 12h mode"""
    minutes = parse_hhmm(hhmm)
    if not use_12h:
        return hhmm
    hours, mins = divmod(minutes, 60)
    suffix = "AM" if hours < 12 else "PM"
    display_hour = hours % 12 or 12
    return f"{display_hour}:{mins:02d} {suffix}"


def day_of_week(day: Union[str, date]) -> int:
    """0=Sunday ... 6=Saturday"""
    return to_date(day).isoweekday() % 7


def offset_timezone(utc_offset: Optional[str] = None) -> timezone:
    offset = utc_offset if utc_offset is not None else get_settings().UTC_OFFSET
    match = _OFFSET_RE.match(offset)
    if not match:
        raise ValueError(f"Invalid UTC offset: {offset!r}")
    sign = -1 if match.group(1) == "-" else 1
    delta = timedelta(hours=int(match.group(2)), minutes=int(match.group(3)))
    return timezone(sign * delta)


def to_datetime(day: Union[str, date], hhmm: str, utc_offset: Optional[str] = None) -> datetime:
    """Aware datetime for a window boundary, in the configured offset"""
    minutes = parse_hhmm(hhmm)
    return datetime.combine(
        to_date(day),
        time(minutes // 60, minutes % 60),
        tzinfo=offset_timezone(utc_offset),
    )
