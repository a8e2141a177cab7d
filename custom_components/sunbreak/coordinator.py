"""Evaluation coordinator for the Sunbreak integration."""
from __future__ import annotations

from datetime import time, timedelta
import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.debounce import Debouncer
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from sunbreak_core import BedtimeEngine, SunbreakException
from sunbreak_core.const import DEBOUNCE_COOLDOWN
from sunbreak_core.scheduler import clamp_interval

from .const import (
	CONF_UPDATE_INTERVAL,
	DEFAULT_UPDATE_INTERVAL,
	DOMAIN,
	LOGGER_NAME,
)

_LOGGER = logging.getLogger(LOGGER_NAME)


class SunbreakDataUpdateCoordinator(DataUpdateCoordinator):
	"""Run the bedtime engine on a fixed interval and on demand.

	The coordinator is the scheduler of the foreground context: the update
	interval is the periodic trigger and the refresh debouncer coalesces
	bursts of configuration, unlock and timezone triggers.
	"""

	def __init__(self, hass: HomeAssistant, entry: ConfigEntry, engine: BedtimeEngine) -> None:
		"""Initialize the coordinator."""
		self.entry = entry
		self.engine = engine
		self._last_reasons: set[str] = set()

		interval = entry.options.get(
			CONF_UPDATE_INTERVAL, entry.data.get(CONF_UPDATE_INTERVAL, DEFAULT_UPDATE_INTERVAL)
		)

		super().__init__(
			hass,
			_LOGGER,
			name=DOMAIN,
			update_interval=timedelta(seconds=clamp_interval(interval)),
			request_refresh_debouncer=Debouncer(
				hass,
				_LOGGER,
				cooldown=DEBOUNCE_COOLDOWN,
				immediate=False,
			),
		)

		# Engine triggers may fire from executor threads
		engine.set_trigger(self.request_evaluation)

	def request_evaluation(self, reason: str) -> None:
		"""Schedule a debounced evaluation, safe to call from any thread."""
		self.hass.loop.call_soon_threadsafe(self._async_request_evaluation, reason)

	@callback
	def _async_request_evaluation(self, reason: str) -> None:
		self._last_reasons.add(reason)
		self.hass.async_create_task(self.async_request_refresh())

	async def _async_update_data(self) -> dict[str, Any]:
		"""Evaluate the engine and return the status for entities."""
		reasons = sorted(self._last_reasons) or ["interval"]
		self._last_reasons.clear()
		_LOGGER.debug(f"Evaluating bedtime state ({', '.join(reasons)})")

		try:
			evaluation = await self.engine.async_evaluate()
			status = await self.hass.async_add_executor_job(self.engine.describe)

		except SunbreakException as err:
			_LOGGER.error("Error evaluating bedtime state: %s", err)
			raise UpdateFailed(f"Error evaluating bedtime state: {err}") from err

		except Exception as err:
			_LOGGER.exception("Unexpected error evaluating bedtime state")
			raise UpdateFailed(f"Unexpected error: {err}") from err

		return {
			**status,
			"evaluation": evaluation,
			"status": evaluation.status,
			"next_transition": evaluation.next_transition,
			"targets": evaluation.targets,
		}

	async def async_unlock_for_today(self) -> None:
		await self.hass.async_add_executor_job(self.engine.unlock_for_today)

	async def async_reset_unlock(self) -> None:
		await self.hass.async_add_executor_job(self.engine.reset_unlock)

	async def async_timezone_changed(self) -> bool:
		return await self.hass.async_add_executor_job(self.engine.timezone_changed)

	async def async_set_schedule(self, bedtime: str | time, wake: str | time) -> list[str]:
		return await self.hass.async_add_executor_job(self.engine.set_schedule, bedtime, wake)

	async def async_set_targets(self, targets: list[str]) -> list[str]:
		return await self.hass.async_add_executor_job(self.engine.set_selection, targets)
