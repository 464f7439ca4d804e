# Overview: UTC clock, ISO-8601 parsing/serialization and day counting for aging.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Default clock for every service: UTC, tz-naive (the stored form)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Union[str, date, None]) -> Optional[datetime]:
    """
    Normalize an ISO-8601 value to a UTC-naive datetime.

    - None / "" -> None
    - "2026-03-01" -> midnight UTC that day
    - "2026-03-01T09:30" (no offset) is taken as UTC
    - "...Z" / "...+02:00" is shifted to UTC

    Raises ValueError for anything else; callers turn that into a
    validation error.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as "YYYY-MM-DDTHH:MM:SSZ" (seconds precision; naive means UTC)."""
    if dt is None:
        return None
    return _naive_utc(dt).replace(microsecond=0).isoformat() + "Z"


def days_since(then: datetime, now: datetime) -> int:
    """Whole days elapsed, floored. A sale made 23 hours ago is 0 days old."""
    return (_naive_utc(now) - _naive_utc(then)).days
