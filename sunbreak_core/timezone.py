"""Timezone and clock change reconciliation."""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
import logging
from typing import Protocol

from .clock import Clock
from .const import (
    CLOCK_ROLLBACK_TOLERANCE,
    KEY_CLOCK_LAST_SEEN,
    TRIGGER_TIMEZONE_CHANGED,
)
from .exceptions import PersistenceUnavailable
from .ledger import UnlockLedger
from .schedule import ScheduleConfigStore
from .state_bus import StateBus
from .util import format_timestamp, parse_timestamp

_LOGGER = logging.getLogger(__name__)


class SunriseProvider(Protocol):
    """External source of the next sunrise."""

    def next_sunrise(self) -> datetime | None:
        """Return the next sunrise, or None if unknown."""


class TimezoneReconciler:
    """Invalidate day-scoped state when the timezone or the clock moves.

    A timezone shift can make "today" ambiguous, or let an unlock computed
    under another offset outlive a now-earlier bedtime, so any change
    unconditionally resets the unlock. A backward clock jump is handled the
    same way.
    """

    def __init__(
        self,
        store: ScheduleConfigStore,
        ledger: UnlockLedger,
        bus: StateBus,
        clock: Clock,
        request_evaluation: Callable[[str], None] | None = None,
        sunrise_provider: SunriseProvider | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.bus = bus
        self.clock = clock
        self.request_evaluation = request_evaluation
        self.sunrise_provider = sunrise_provider

    def timezone_changed(self) -> bool:
        """Handle a timezone change signal; return True if state was invalidated."""
        current = self.clock.timezone_id()
        try:
            marker = self.store.get_timezone_marker()
        except PersistenceUnavailable as err:
            _LOGGER.warning("Timezone marker unreadable, assuming a change: %s", err)
            marker = None

        if marker == current:
            _LOGGER.debug("Timezone unchanged (%s)", current)
            return False

        _LOGGER.info("Timezone changed from %s to %s", marker or "unknown", current)
        self.store.set_timezone_marker(current)
        self.ledger.reset_unlock()
        self.refresh_wake_time()
        if self.request_evaluation is not None:
            self.request_evaluation(TRIGGER_TIMEZONE_CHANGED)
        return True

    def refresh_wake_time(self) -> None:
        """Ask the Sunrise Provider for a new wake time, if one is configured."""
        if self.sunrise_provider is None:
            return
        try:
            sunrise = self.sunrise_provider.next_sunrise()
        except Exception as err:
            _LOGGER.warning("Sunrise provider failed: %s", err)
            return
        if sunrise is None:
            _LOGGER.debug("Sunrise provider has no sunrise, keeping wake time")
            return
        self.store.apply_sunrise(sunrise)

    def check_clock(self, now: datetime | None = None) -> bool:
        """Detect a backward clock jump; return True if state was invalidated."""
        now = now or self.clock.now()
        tolerance = timedelta(seconds=CLOCK_ROLLBACK_TOLERANCE)
        try:
            last_seen = parse_timestamp(self.bus.get(KEY_CLOCK_LAST_SEEN))
        except PersistenceUnavailable as err:
            _LOGGER.warning("Ignoring unreadable clock marker: %s", err)
            last_seen = None
        last_success = self.ledger.load().last_success_at

        rolled_back = any(
            reference is not None and now < reference - tolerance
            for reference in (last_seen, last_success)
        )

        if rolled_back:
            _LOGGER.warning(
                "Clock moved backwards (now %s, last seen %s), invalidating unlock",
                now.isoformat(),
                last_seen.isoformat() if last_seen else "unknown",
            )
            self.ledger.reset_unlock()

        if rolled_back or last_seen is None or now > last_seen:
            self.bus.set(KEY_CLOCK_LAST_SEEN, format_timestamp(now))
        return rolled_back
