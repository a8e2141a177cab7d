"""Day-scoped unlock ledger."""
from __future__ import annotations

from datetime import datetime
import logging

from .clock import Clock
from .const import KEY_UNLOCK_DAY, KEY_UNLOCK_LAST_SUCCESS
from .exceptions import PersistenceUnavailable
from .models import ScheduleConfig, UnlockRecord
from .state_bus import StateBus
from .util import format_timestamp, parse_day, parse_timestamp
from .window import last_bedtime_start, validate_schedule

_LOGGER = logging.getLogger(__name__)


class UnlockLedger:
    """One-shot unlock valid for the current calendar day.

    Expiry is calendar-day equality in the active timezone, never elapsed
    duration: an unlock granted at 23:59 is gone at 00:01. An unlock also
    expires once a new bedtime period begins after it was granted.

    Expired records are left in place and read as locked. Only an explicit
    reset or a timezone or clock invalidation deletes them, so a reader never
    removes an unlock another context is writing.
    """

    def __init__(self, bus: StateBus, clock: Clock) -> None:
        self.bus = bus
        self.clock = clock

    def load(self) -> UnlockRecord:
        """Return the stored record; corrupt data reads as no unlock."""
        try:
            return UnlockRecord(
                unlocked_for_day=parse_day(self.bus.get(KEY_UNLOCK_DAY)),
                last_success_at=parse_timestamp(self.bus.get(KEY_UNLOCK_LAST_SUCCESS)),
            )
        except PersistenceUnavailable as err:
            _LOGGER.warning("Unlock record unavailable, treating as locked: %s", err)
            return UnlockRecord()

    def unlock_for_today(self) -> UnlockRecord:
        """Record a successful verification for today."""
        now = self.clock.now()
        today = now.date()
        existing = self.load()

        # Last write wins, but the success timestamp never moves backwards
        stamp = now
        if existing.last_success_at is not None and existing.last_success_at > now:
            stamp = existing.last_success_at

        # The day goes last: a reader that sees the new day also sees its stamp
        self.bus.set(KEY_UNLOCK_LAST_SUCCESS, format_timestamp(stamp))
        self.bus.set(KEY_UNLOCK_DAY, today.isoformat())

        if existing.unlocked_for_day == today:
            _LOGGER.debug("Already unlocked for %s", today)
        else:
            _LOGGER.info("Unlocked for %s", today)
        return UnlockRecord(unlocked_for_day=today, last_success_at=stamp)

    def has_rolled_over(
        self,
        record: UnlockRecord,
        schedule: ScheduleConfig,
        now: datetime | None = None,
    ) -> bool:
        """Return True if a bedtime period began after the unlock was granted."""
        if record.last_success_at is None or validate_schedule(schedule.bedtime, schedule.wake):
            return False
        now = now or self.clock.now()
        start = last_bedtime_start(now, schedule.bedtime)
        return record.last_success_at < start <= now

    def is_unlocked_today(self, schedule: ScheduleConfig | None = None, now: datetime | None = None) -> bool:
        """Return True if an unlock exists for today's calendar day."""
        record = self.load()
        if record.is_empty:
            return False
        now = now or self.clock.now()
        if record.unlocked_for_day != now.date():
            return False
        if schedule is not None and self.has_rolled_over(record, schedule, now):
            return False
        return True

    def reset_unlock(self) -> None:
        """Clear the record."""
        self.bus.delete(KEY_UNLOCK_DAY)
        self.bus.delete(KEY_UNLOCK_LAST_SUCCESS)
        _LOGGER.debug("Unlock record cleared")
