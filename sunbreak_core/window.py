"""Bedtime window arithmetic.

Every value is reduced to minutes since local midnight (0-1439) in the
timezone the caller already converted ``now`` to. Seconds are ignored, so
the window opens on the bedtime minute and closes on the wake minute.
"""
from __future__ import annotations

from datetime import datetime, time, timedelta

from .const import WARNING_DEGENERATE_SCHEDULE

MINUTES_PER_DAY = 24 * 60


def minutes_of_day(value: datetime | time) -> int:
    """Return minutes since midnight for a time or a datetime."""
    return value.hour * 60 + value.minute


def is_within_bedtime_window(now: datetime | time, bedtime: time, wake: time) -> bool:
    """Return True if ``now`` falls in the half-open window [bedtime, wake).

    A bedtime later than the wake time wraps midnight. A bedtime equal to the
    wake time is a degenerate schedule and is never active.
    """
    current = minutes_of_day(now)
    bed = minutes_of_day(bedtime)
    wake_minutes = minutes_of_day(wake)

    if bed == wake_minutes:
        return False

    if bed > wake_minutes:
        # Crosses midnight, e.g. 22:00 -> 07:00
        return current >= bed or current < wake_minutes

    return bed <= current < wake_minutes


def validate_schedule(bedtime: time, wake: time) -> list[str]:
    """Return validation warnings for a schedule."""
    warnings: list[str] = []
    if minutes_of_day(bedtime) == minutes_of_day(wake):
        warnings.append(WARNING_DEGENERATE_SCHEDULE)
    return warnings


def _at(day_start: datetime, value: time, days: int = 0) -> datetime:
    return datetime.combine(
        day_start.date() + timedelta(days=days),
        time(value.hour, value.minute),
        tzinfo=day_start.tzinfo,
    )


def last_bedtime_start(now: datetime, bedtime: time) -> datetime:
    """Return the most recent instant at or before ``now`` where bedtime began."""
    start = _at(now, bedtime)
    if start > now:
        start = _at(now, bedtime, days=-1)
    return start


def next_occurrence(value: time, after: datetime) -> datetime:
    """Return the next instant strictly after ``after`` at time-of-day ``value``."""
    candidate = _at(after, value)
    if candidate <= after:
        candidate = _at(after, value, days=1)
    return candidate


def next_transition(now: datetime, bedtime: time, wake: time) -> datetime | None:
    """Return when the window next opens or closes, None if it never does."""
    if validate_schedule(bedtime, wake):
        return None
    return min(next_occurrence(bedtime, now), next_occurrence(wake, now))
