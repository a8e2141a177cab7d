"""Serialization helpers for State Bus values."""
from __future__ import annotations

from datetime import date, datetime, time, timezone

from .exceptions import InvalidSchedule, PersistenceUnavailable


def format_timestamp(value: datetime) -> str:
    """Serialize an aware timestamp as ISO-8601 in UTC."""
    if value.tzinfo is None:
        raise ValueError("Timestamps must be timezone aware")
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp written by format_timestamp."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as err:
        raise PersistenceUnavailable(f"Corrupt timestamp: {value!r}") from err
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as err:
        raise PersistenceUnavailable(f"Corrupt calendar day: {value!r}") from err


def parse_time_of_day(value: str | time) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a date-free time-of-day."""
    if isinstance(value, time):
        return time(value.hour, value.minute)
    if not isinstance(value, str):
        raise InvalidSchedule(f"Expected a time of day, got {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise InvalidSchedule(f"Invalid time of day: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidSchedule(f"Time of day out of range: {value!r}")
    return time(hour, minute)


def format_time_of_day(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"
