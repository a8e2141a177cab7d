"""Config flow for Sunbreak integration."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import selector

from sunbreak_core import DirectoryStateBus, InvalidSchedule, PersistenceUnavailable, validate_schedule
from sunbreak_core.const import KEY_SCHEMA_VERSION, MAX_WAKE_BUFFER_MINUTES
from sunbreak_core.util import parse_time_of_day

from .const import (
	CONF_BEDTIME,
	CONF_STATE_DIR,
	CONF_TARGETS,
	CONF_UPDATE_INTERVAL,
	CONF_USE_SUNRISE,
	CONF_WAKE,
	CONF_WAKE_BUFFER,
	DEFAULT_BEDTIME,
	DEFAULT_STATE_DIR,
	DEFAULT_UPDATE_INTERVAL,
	DEFAULT_USE_SUNRISE,
	DEFAULT_WAKE,
	DEFAULT_WAKE_BUFFER,
	DOMAIN,
	INTEGRATION_NAME,
	LOGGER_NAME,
	TARGET_DOMAINS,
)

_LOGGER = logging.getLogger(LOGGER_NAME)


def _check_state_dir(path: str) -> None:
	"""Make sure the shared directory is readable and writable."""
	bus = DirectoryStateBus(path)
	current = bus.get(KEY_SCHEMA_VERSION)
	if current is None:
		# Write a key no context ever reads
		bus.set("flow_write_check", "ok")
		bus.delete("flow_write_check")


async def validate_input(hass: HomeAssistant, data: dict[str, Any]) -> dict[str, Any]:
	"""Validate the schedule and the shared state directory."""
	try:
		bedtime = parse_time_of_day(data[CONF_BEDTIME])
		wake = parse_time_of_day(data[CONF_WAKE])
	except InvalidSchedule as err:
		raise InvalidTime from err

	warnings = validate_schedule(bedtime, wake)
	if warnings:
		_LOGGER.debug(f"Schedule rejected: {warnings}")
		raise DegenerateSchedule

	state_dir = data.get(CONF_STATE_DIR)
	if state_dir:
		try:
			await hass.async_add_executor_job(_check_state_dir, state_dir)
		except PersistenceUnavailable as err:
			_LOGGER.error("Shared state directory unusable: %s", err)
			raise CannotWrite from err

	return {"title": data.get(CONF_NAME, INTEGRATION_NAME)}


def _schedule_schema(defaults: dict[str, Any]) -> dict[Any, Any]:
	"""Fields shared by the user step and the options flow."""
	return {
		vol.Required(CONF_BEDTIME, default=defaults.get(CONF_BEDTIME, DEFAULT_BEDTIME)): selector.TimeSelector(),
		vol.Required(CONF_WAKE, default=defaults.get(CONF_WAKE, DEFAULT_WAKE)): selector.TimeSelector(),
		vol.Optional(CONF_TARGETS, default=defaults.get(CONF_TARGETS, [])): selector.EntitySelector(
			selector.EntitySelectorConfig(domain=list(TARGET_DOMAINS), multiple=True)
		),
		vol.Optional(
			CONF_UPDATE_INTERVAL, default=defaults.get(CONF_UPDATE_INTERVAL, DEFAULT_UPDATE_INTERVAL)
		): vol.All(vol.Coerce(int), vol.Range(min=10, max=60)),
		vol.Optional(CONF_USE_SUNRISE, default=defaults.get(CONF_USE_SUNRISE, DEFAULT_USE_SUNRISE)): bool,
		vol.Optional(CONF_WAKE_BUFFER, default=defaults.get(CONF_WAKE_BUFFER, DEFAULT_WAKE_BUFFER)): vol.All(
			vol.Coerce(int), vol.Range(min=0, max=MAX_WAKE_BUFFER_MINUTES)
		),
	}


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
	"""Handle a config flow for Sunbreak."""

	VERSION = 1

	async def async_step_user(
		self, user_input: dict[str, Any] | None = None
	) -> FlowResult:
		"""Handle the initial step."""
		errors: dict[str, str] = {}

		if user_input is not None:
			await self.async_set_unique_id(user_input[CONF_STATE_DIR])
			self._abort_if_unique_id_configured()

			try:
				info = await validate_input(self.hass, user_input)
				return self.async_create_entry(title=info["title"], data=user_input)

			except InvalidTime:
				errors["base"] = "invalid_time"
			except DegenerateSchedule:
				errors["base"] = "degenerate_schedule"
			except CannotWrite:
				errors[CONF_STATE_DIR] = "cannot_write"
			except Exception:
				_LOGGER.exception("Unexpected exception")
				errors["base"] = "unknown"

		schema = vol.Schema({
			vol.Required(CONF_NAME, default=INTEGRATION_NAME): str,
			vol.Required(CONF_STATE_DIR, default=DEFAULT_STATE_DIR): str,
			**_schedule_schema(user_input or {}),
		})

		return self.async_show_form(
			step_id="user",
			data_schema=schema,
			errors=errors,
		)

	@staticmethod
	@callback
	def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> OptionsFlowHandler:
		"""Get the options flow for this handler."""
		return OptionsFlowHandler()


class OptionsFlowHandler(config_entries.OptionsFlow):
	"""Edit the schedule, the targets and the evaluation interval."""

	async def async_step_init(
		self, user_input: dict[str, Any] | None = None
	) -> FlowResult:
		"""Manage the options."""
		errors: dict[str, str] = {}

		if user_input is not None:
			try:
				await validate_input(self.hass, user_input)
				return self.async_create_entry(title="", data=user_input)
			except InvalidTime:
				errors["base"] = "invalid_time"
			except DegenerateSchedule:
				errors["base"] = "degenerate_schedule"

		defaults = {**self.config_entry.data, **self.config_entry.options, **(user_input or {})}
		return self.async_show_form(
			step_id="init",
			data_schema=vol.Schema(_schedule_schema(defaults)),
			errors=errors,
		)


class InvalidTime(HomeAssistantError):
	"""Error to indicate a time of day could not be parsed."""


class DegenerateSchedule(HomeAssistantError):
	"""Error to indicate bedtime equals wake time."""


class CannotWrite(HomeAssistantError):
	"""Error to indicate the shared state directory is not writable."""
