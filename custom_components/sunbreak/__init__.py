"""The Sunbreak integration."""
from __future__ import annotations

import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_CORE_CONFIG_UPDATE, Platform
from homeassistant.core import Event, HomeAssistant, ServiceCall
from homeassistant.exceptions import ConfigEntryNotReady, HomeAssistantError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.event import async_track_state_change_event
import voluptuous as vol

from sunbreak_core import (
	BedtimeEngine,
	DirectoryStateBus,
	InvalidSchedule,
	SunbreakException,
)

from .const import (
	CONF_BEDTIME,
	CONF_STATE_DIR,
	CONF_TARGETS,
	CONF_USE_SUNRISE,
	CONF_WAKE,
	CONF_WAKE_BUFFER,
	CONTEXT_NAME,
	DEFAULT_BEDTIME,
	DEFAULT_STATE_DIR,
	DEFAULT_USE_SUNRISE,
	DEFAULT_WAKE,
	DEFAULT_WAKE_BUFFER,
	DOMAIN,
	LOGGER_NAME,
	SERVICE_RESET_UNLOCK,
	SERVICE_SET_SCHEDULE,
	SERVICE_SET_TARGETS,
	SERVICE_TIMEZONE_CHANGED,
	SERVICE_UNLOCK_FOR_TODAY,
	SUN_ENTITY_ID,
)
from .coordinator import SunbreakDataUpdateCoordinator
from .providers import HomeAssistantClock, SunEntitySunriseProvider
from .restrictor import EntityRestrictor

_LOGGER = logging.getLogger(LOGGER_NAME)

PLATFORMS: list[Platform] = [Platform.BINARY_SENSOR, Platform.BUTTON, Platform.SENSOR]

SERVICES = [
	SERVICE_SET_SCHEDULE,
	SERVICE_SET_TARGETS,
	SERVICE_UNLOCK_FOR_TODAY,
	SERVICE_RESET_UNLOCK,
	SERVICE_TIMEZONE_CHANGED,
]

# Service schemas
SCHEMA_SET_SCHEDULE = vol.Schema({
	vol.Required(CONF_BEDTIME): cv.time,
	vol.Required(CONF_WAKE): cv.time,
})

SCHEMA_SET_TARGETS = vol.Schema({
	vol.Required(CONF_TARGETS): cv.entity_ids,
})


def _entry_value(entry: ConfigEntry, key: str, default: Any) -> Any:
	"""Return an option, falling back to the initial config data."""
	return entry.options.get(key, entry.data.get(key, default))


def _push_entry_to_store(engine: BedtimeEngine, entry: ConfigEntry, force: bool) -> None:
	"""Copy the schedule and targets of the config entry into the shared store.

	On setup only missing values are written, so changes made from the
	monitor context survive a restart. Option updates always win.
	"""
	store = engine.store
	engine.set_wake_buffer(_entry_value(entry, CONF_WAKE_BUFFER, DEFAULT_WAKE_BUFFER))

	if force or store.load().is_default:
		warnings = engine.set_schedule(
			_entry_value(entry, CONF_BEDTIME, DEFAULT_BEDTIME),
			_entry_value(entry, CONF_WAKE, DEFAULT_WAKE),
		)
		if warnings:
			_LOGGER.warning("Saved schedule has warnings: %s", ", ".join(warnings))

	targets = _entry_value(entry, CONF_TARGETS, [])
	if force or not store.load_selection():
		engine.set_selection(targets)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Set up Sunbreak from a config entry."""
	_LOGGER.debug("Setting up Sunbreak integration")

	try:
		sunrise_provider = None
		if _entry_value(entry, CONF_USE_SUNRISE, DEFAULT_USE_SUNRISE):
			sunrise_provider = SunEntitySunriseProvider(hass)

		engine = BedtimeEngine(
			DirectoryStateBus(entry.data.get(CONF_STATE_DIR, DEFAULT_STATE_DIR)),
			HomeAssistantClock(hass),
			EntityRestrictor(hass),
			context_name=CONTEXT_NAME,
			sunrise_provider=sunrise_provider,
			run_blocking=hass.async_add_executor_job,
		)

		# Create coordinator for evaluations
		coordinator = SunbreakDataUpdateCoordinator(hass, entry, engine)

		await hass.async_add_executor_job(_push_entry_to_store, engine, entry, False)

		# The timezone may have changed while Home Assistant was stopped
		await coordinator.async_timezone_changed()

		# Perform initial evaluation
		await coordinator.async_config_entry_first_refresh()

		hass.data.setdefault(DOMAIN, {})
		hass.data[DOMAIN][entry.entry_id] = coordinator

		await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

		_async_setup_listeners(hass, entry, coordinator, sunrise_provider is not None)
		await async_setup_services(hass, coordinator)

		_LOGGER.info("Successfully set up Sunbreak integration")
		return True

	except SunbreakException as err:
		_LOGGER.error("Failed to set up Sunbreak: %s", err)
		raise ConfigEntryNotReady from err
	except Exception as err:
		_LOGGER.exception("Unexpected error setting up Sunbreak: %s", err)
		raise ConfigEntryNotReady from err


def _async_setup_listeners(
	hass: HomeAssistant,
	entry: ConfigEntry,
	coordinator: SunbreakDataUpdateCoordinator,
	use_sunrise: bool,
) -> None:
	"""Relay timezone and sunrise changes to the engine."""

	async def _async_core_config_updated(event: Event) -> None:
		if await coordinator.async_timezone_changed():
			_LOGGER.info("Home Assistant timezone changed, unlock reset")

	entry.async_on_unload(
		hass.bus.async_listen(EVENT_CORE_CONFIG_UPDATE, _async_core_config_updated)
	)

	if use_sunrise:
		async def _async_sun_changed(event: Event) -> None:
			await hass.async_add_executor_job(coordinator.engine.refresh_wake_time)

		entry.async_on_unload(
			async_track_state_change_event(hass, [SUN_ENTITY_ID], _async_sun_changed)
		)

	entry.async_on_unload(entry.add_update_listener(async_update_options))


async def async_setup_services(hass: HomeAssistant, coordinator: SunbreakDataUpdateCoordinator) -> None:
	"""Set up services for Sunbreak."""
	if hass.services.has_service(DOMAIN, SERVICE_SET_SCHEDULE):
		return

	async def handle_set_schedule(call: ServiceCall) -> None:
		"""Handle set_schedule service call."""
		bedtime = call.data[CONF_BEDTIME]
		wake = call.data[CONF_WAKE]
		_LOGGER.info(f"Service called: set_schedule {bedtime}-{wake}")

		try:
			warnings = await coordinator.async_set_schedule(bedtime, wake)
		except InvalidSchedule as err:
			raise HomeAssistantError(f"Invalid schedule: {err}") from err

		if warnings:
			_LOGGER.warning(f"Schedule {bedtime}-{wake} saved with warnings: {', '.join(warnings)}")

	async def handle_set_targets(call: ServiceCall) -> None:
		"""Handle set_targets service call."""
		targets = call.data[CONF_TARGETS]
		_LOGGER.info(f"Service called: set_targets ({len(targets)} targets)")
		try:
			await coordinator.async_set_targets(targets)
		except InvalidSchedule as err:
			raise HomeAssistantError(str(err)) from err

	async def handle_unlock_for_today(call: ServiceCall) -> None:
		"""Handle unlock_for_today service call."""
		_LOGGER.info("Service called: unlock_for_today")
		await coordinator.async_unlock_for_today()

	async def handle_reset_unlock(call: ServiceCall) -> None:
		"""Handle reset_unlock service call."""
		_LOGGER.info("Service called: reset_unlock")
		await coordinator.async_reset_unlock()

	async def handle_timezone_changed(call: ServiceCall) -> None:
		"""Handle timezone_changed service call."""
		_LOGGER.info("Service called: timezone_changed")
		await coordinator.async_timezone_changed()

	hass.services.async_register(
		DOMAIN,
		SERVICE_SET_SCHEDULE,
		handle_set_schedule,
		schema=SCHEMA_SET_SCHEDULE,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_SET_TARGETS,
		handle_set_targets,
		schema=SCHEMA_SET_TARGETS,
	)

	hass.services.async_register(DOMAIN, SERVICE_UNLOCK_FOR_TODAY, handle_unlock_for_today)
	hass.services.async_register(DOMAIN, SERVICE_RESET_UNLOCK, handle_reset_unlock)
	hass.services.async_register(DOMAIN, SERVICE_TIMEZONE_CHANGED, handle_timezone_changed)

	_LOGGER.debug("Sunbreak services registered")


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
	"""Push edited options to the shared store, then reload."""
	coordinator: SunbreakDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]
	try:
		await hass.async_add_executor_job(_push_entry_to_store, coordinator.engine, entry, True)
	except SunbreakException as err:
		_LOGGER.error("Failed to save Sunbreak options: %s", err)
	await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Unload a config entry."""
	_LOGGER.debug("Unloading Sunbreak integration")

	unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

	if unload_ok:
		hass.data[DOMAIN].pop(entry.entry_id)

		# Unregister services if this was the last entry
		if not hass.data[DOMAIN]:
			for service in SERVICES:
				hass.services.async_remove(DOMAIN, service)
			_LOGGER.debug("Sunbreak services unregistered")

	return unload_ok
