"""Injectable clock and timezone sources."""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
import logging
import os
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .const import DEFAULT_TIMEZONE

_LOGGER = logging.getLogger(__name__)


class Clock(Protocol):
    """Source of the current instant and the active timezone."""

    def now(self) -> datetime:
        """Return the current instant, aware, in the active timezone."""

    def timezone_id(self) -> str:
        """Return the IANA identifier of the active timezone."""


def resolve_zone(timezone_id: str | None) -> ZoneInfo:
    """Return a ZoneInfo for the identifier, falling back to UTC."""
    try:
        return ZoneInfo(timezone_id or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        _LOGGER.warning("Unknown timezone %r, falling back to %s", timezone_id, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


class ZoneClock:
    """Wall clock in a timezone read from a provider on every call.

    The provider defaults to the ``TZ`` environment variable so that a
    container restarted with a new zone is picked up without code changes.
    """

    def __init__(self, timezone_provider: Callable[[], str | None] | None = None) -> None:
        self._timezone_provider = timezone_provider or (lambda: os.environ.get("TZ"))

    def timezone_id(self) -> str:
        return str(resolve_zone(self._timezone_provider()))

    def now(self) -> datetime:
        return datetime.now(resolve_zone(self._timezone_provider()))


class FrozenClock:
    """Manually driven clock."""

    def __init__(self, now: datetime, timezone_id: str | None = None) -> None:
        if now.tzinfo is None:
            now = now.replace(tzinfo=resolve_zone(timezone_id))
        self._zone = resolve_zone(timezone_id) if timezone_id else now.tzinfo
        self._now = now.astimezone(self._zone)

    def now(self) -> datetime:
        return self._now

    def timezone_id(self) -> str:
        return str(self._zone)

    def set(self, now: datetime) -> None:
        """Jump to an instant; naive values are read in the active timezone."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=self._zone)
        self._now = now.astimezone(self._zone)

    def advance(self, **kwargs: float) -> None:
        self._now = (self._now + timedelta(**kwargs)).astimezone(self._zone)

    def set_timezone(self, timezone_id: str) -> None:
        """Move to another zone while keeping the same instant."""
        self._zone = resolve_zone(timezone_id)
        self._now = self._now.astimezone(self._zone)
