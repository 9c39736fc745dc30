from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def localnow() -> datetime:
    """
    Wall-clock 'now' at the terminal.

    Happy-hour windows are expressed in the bar's local time, so rule
    matching uses this instead of utcnow().
    """
    return datetime.now()


def weekday_name(dt: datetime) -> str:
    return WEEKDAY_NAMES[dt.weekday()]


def parse_time_of_day(value) -> time:
    """
    Accept a datetime.time or an "HH:MM" / "HH:MM:SS" string.
    """
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise ValueError("invalid time of day")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
