"""Persisted schedule configuration and restriction selection."""
from __future__ import annotations

from datetime import datetime, time, timedelta
import json
import logging
from typing import Any

import voluptuous as vol

from .clock import Clock
from .const import (
    DEFAULT_BEDTIME,
    DEFAULT_WAKE,
    DEFAULT_WAKE_BUFFER_MINUTES,
    KEY_BEDTIME,
    KEY_SCHEDULE_UPDATED_AT,
    KEY_SCHEMA_VERSION,
    KEY_SELECTION,
    KEY_TIMEZONE,
    KEY_WAKE,
    KEY_WAKE_BUFFER,
    MAX_WAKE_BUFFER_MINUTES,
    SCHEMA_VERSION,
)
from .exceptions import (
    ConfigurationMissing,
    InvalidSchedule,
    PersistenceUnavailable,
)
from .models import ScheduleConfig
from .state_bus import StateBus
from .util import (
    format_time_of_day,
    format_timestamp,
    parse_time_of_day,
    parse_timestamp,
)
from .window import validate_schedule

_LOGGER = logging.getLogger(__name__)


def time_of_day(value: Any) -> time:
    """Voluptuous validator for a time of day."""
    try:
        return parse_time_of_day(value)
    except InvalidSchedule as err:
        raise vol.Invalid(str(err)) from err


SCHEDULE_SCHEMA = vol.Schema({
    vol.Required("bedtime"): time_of_day,
    vol.Required("wake"): time_of_day,
    vol.Optional("timezone_id"): vol.Any(None, vol.All(str, vol.Length(min=1))),
})

WAKE_BUFFER_SCHEMA = vol.All(vol.Coerce(int), vol.Clamp(min=0, max=MAX_WAKE_BUFFER_MINUTES))

SELECTION_SCHEMA = vol.Schema([vol.All(str, vol.Length(min=1))])


class ScheduleConfigStore:
    """Read and write the schedule keys of the State Bus."""

    def __init__(self, bus: StateBus, clock: Clock) -> None:
        self.bus = bus
        self.clock = clock

    def _check_schema_version(self) -> None:
        raw = self.bus.get(KEY_SCHEMA_VERSION)
        if raw is None:
            return
        try:
            version = int(raw)
        except ValueError as err:
            raise PersistenceUnavailable(f"Corrupt schema version: {raw!r}") from err
        if version > SCHEMA_VERSION:
            raise PersistenceUnavailable(
                f"Stored schema version {version} is newer than supported version {SCHEMA_VERSION}"
            )

    def _defaults(self) -> ScheduleConfig:
        return ScheduleConfig(
            bedtime=DEFAULT_BEDTIME,
            wake=DEFAULT_WAKE,
            timezone_id=self.clock.timezone_id(),
            wake_buffer_minutes=DEFAULT_WAKE_BUFFER_MINUTES,
            is_default=True,
        )

    def _read(self) -> ScheduleConfig:
        self._check_schema_version()
        raw_bedtime = self.bus.get(KEY_BEDTIME)
        raw_wake = self.bus.get(KEY_WAKE)
        if raw_bedtime is None or raw_wake is None:
            raise ConfigurationMissing("No schedule saved")

        try:
            bedtime = parse_time_of_day(raw_bedtime)
            wake = parse_time_of_day(raw_wake)
        except InvalidSchedule as err:
            raise PersistenceUnavailable(f"Corrupt schedule: {err}") from err

        raw_buffer = self.bus.get(KEY_WAKE_BUFFER)
        try:
            buffer = WAKE_BUFFER_SCHEMA(raw_buffer) if raw_buffer is not None else DEFAULT_WAKE_BUFFER_MINUTES
        except vol.Invalid:
            buffer = DEFAULT_WAKE_BUFFER_MINUTES

        return ScheduleConfig(
            bedtime=bedtime,
            wake=wake,
            timezone_id=self.bus.get(KEY_TIMEZONE) or self.clock.timezone_id(),
            wake_buffer_minutes=buffer,
            updated_at=parse_timestamp(self.bus.get(KEY_SCHEDULE_UPDATED_AT)),
        )

    def load(self) -> ScheduleConfig:
        """Return the saved schedule, or the built-in defaults.

        Missing or unreadable data never raises. Defaults are kept in memory
        only so that a newer schema written by the other context is not
        overwritten.
        """
        try:
            return self._read()
        except ConfigurationMissing:
            _LOGGER.debug("No schedule saved, using defaults")
        except PersistenceUnavailable as err:
            _LOGGER.warning("Schedule store unavailable, using defaults: %s", err)
        return self._defaults()

    def save(self, bedtime: str | time, wake: str | time, timezone_id: str | None = None) -> list[str]:
        """Persist a schedule and return its validation warnings.

        Without an explicit zone the stored marker is kept. Only the
        reconciler moves it, so a pending timezone change is never hidden.
        """
        try:
            data = SCHEDULE_SCHEMA({"bedtime": bedtime, "wake": wake, "timezone_id": timezone_id})
        except vol.Invalid as err:
            raise InvalidSchedule(str(err)) from err

        warnings = validate_schedule(data["bedtime"], data["wake"])
        if warnings:
            _LOGGER.warning(
                "Schedule %s-%s has warnings %s; the window will never be active",
                format_time_of_day(data["bedtime"]),
                format_time_of_day(data["wake"]),
                warnings,
            )

        self.bus.set(KEY_SCHEMA_VERSION, str(SCHEMA_VERSION))
        self.bus.set(KEY_BEDTIME, format_time_of_day(data["bedtime"]))
        self.bus.set(KEY_WAKE, format_time_of_day(data["wake"]))
        self.bus.set(KEY_TIMEZONE, data["timezone_id"] or self._stored_marker() or self.clock.timezone_id())
        self.bus.set(KEY_SCHEDULE_UPDATED_AT, format_timestamp(self.clock.now()))
        _LOGGER.info(
            "Saved schedule %s-%s",
            format_time_of_day(data["bedtime"]),
            format_time_of_day(data["wake"]),
        )
        return warnings

    def set_wake_buffer(self, minutes: int) -> int:
        """Persist the wake buffer, clamped to 0-120 minutes."""
        try:
            buffer = WAKE_BUFFER_SCHEMA(minutes)
        except vol.Invalid as err:
            raise InvalidSchedule(str(err)) from err
        self.bus.set(KEY_WAKE_BUFFER, str(buffer))
        return buffer

    def apply_sunrise(self, sunrise: datetime | time) -> time | None:
        """Derive the wake time from a sunrise plus the configured buffer.

        Returns None without writing when the store holds a newer schema.
        """
        try:
            self._check_schema_version()
        except PersistenceUnavailable as err:
            _LOGGER.warning("Keeping wake time, schedule store unavailable: %s", err)
            return None
        config = self.load()
        if isinstance(sunrise, datetime):
            sunrise = sunrise.astimezone(self.clock.now().tzinfo).time()
        anchor = datetime.combine(self.clock.now().date(), time(sunrise.hour, sunrise.minute))
        wake = (anchor + timedelta(minutes=config.wake_buffer_minutes)).time()
        self.save(config.bedtime, wake)
        _LOGGER.info(
            "Wake time set to %s from sunrise %s",
            format_time_of_day(wake),
            format_time_of_day(sunrise),
        )
        return wake

    def get_timezone_marker(self) -> str | None:
        return self.bus.get(KEY_TIMEZONE)

    def _stored_marker(self) -> str | None:
        try:
            return self.bus.get(KEY_TIMEZONE)
        except PersistenceUnavailable as err:
            _LOGGER.warning("Timezone marker unreadable: %s", err)
            return None

    def set_timezone_marker(self, timezone_id: str) -> None:
        self.bus.set(KEY_TIMEZONE, timezone_id)

    def load_selection(self) -> list[str]:
        """Return the restriction targets, empty when unset or unreadable."""
        try:
            raw = self.bus.get(KEY_SELECTION)
        except PersistenceUnavailable as err:
            _LOGGER.warning("Selection unavailable: %s", err)
            return []
        if not raw:
            return []
        try:
            return SELECTION_SCHEMA(json.loads(raw))
        except (ValueError, vol.Invalid) as err:
            _LOGGER.warning("Ignoring corrupt selection: %s", err)
            return []

    def save_selection(self, targets: list[str]) -> list[str]:
        try:
            targets = SELECTION_SCHEMA(list(targets))
        except vol.Invalid as err:
            raise InvalidSchedule(f"Invalid selection: {err}") from err
        self.bus.set(KEY_SELECTION, json.dumps(targets))
        _LOGGER.info("Saved %d restriction targets", len(targets))
        return targets
