"""Clock and sunrise sources backed by Home Assistant."""
from __future__ import annotations

from datetime import datetime
import logging

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

from .const import ATTR_NEXT_RISING, LOGGER_NAME, SUN_ENTITY_ID

_LOGGER = logging.getLogger(LOGGER_NAME)


class HomeAssistantClock:
	"""Clock following the timezone configured in Home Assistant."""

	def __init__(self, hass: HomeAssistant) -> None:
		self.hass = hass

	def timezone_id(self) -> str:
		return self.hass.config.time_zone

	def now(self) -> datetime:
		zone = dt_util.get_time_zone(self.hass.config.time_zone)
		return dt_util.now(zone)


class SunEntitySunriseProvider:
	"""Read the next sunrise from the sun integration."""

	def __init__(self, hass: HomeAssistant) -> None:
		self.hass = hass

	def next_sunrise(self) -> datetime | None:
		state = self.hass.states.get(SUN_ENTITY_ID)
		if state is None:
			_LOGGER.debug("%s not available, no sunrise to apply", SUN_ENTITY_ID)
			return None

		next_rising = state.attributes.get(ATTR_NEXT_RISING)
		if isinstance(next_rising, datetime):
			return next_rising
		if not next_rising:
			return None
		return dt_util.parse_datetime(str(next_rising))
