"""Restrictor turning Home Assistant entities off during bedtime."""
from __future__ import annotations

import logging

from homeassistant.const import (
	ATTR_ENTITY_ID,
	SERVICE_TURN_OFF,
	SERVICE_TURN_ON,
	STATE_UNAVAILABLE,
)
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError

from sunbreak_core import AuthorizationUnavailable, RestrictionMode, Restrictor, RestrictorError

from .const import LOGGER_NAME

_LOGGER = logging.getLogger(LOGGER_NAME)

HA_DOMAIN = "homeassistant"


class EntityRestrictor(Restrictor):
	"""Shield by turning target entities off, clear by turning them on.

	Targets are entity ids (a parental control switch, a smart plug, a
	media player). Calls are repeated on every evaluation; turning an entity
	to the state it already has is harmless.
	"""

	def __init__(self, hass: HomeAssistant) -> None:
		self.hass = hass

	def is_authorized(self) -> bool:
		"""Return True if the entity services can be called."""
		return self.hass.services.has_service(HA_DOMAIN, SERVICE_TURN_OFF)

	def _available_targets(self, selection: list[str]) -> list[str]:
		available = []
		for entity_id in selection:
			state = self.hass.states.get(entity_id)
			if state is None or state.state == STATE_UNAVAILABLE:
				_LOGGER.debug(f"Restriction target {entity_id} is unavailable")
				continue
			available.append(entity_id)
		return available

	async def async_apply(self, selection: list[str], mode: RestrictionMode) -> None:
		"""Turn every available target off (shield) or on (clear)."""
		targets = self._available_targets(selection)
		if not targets:
			raise AuthorizationUnavailable(
				f"None of the {len(selection)} restriction targets is available"
			)

		service = SERVICE_TURN_OFF if mode is RestrictionMode.SHIELD else SERVICE_TURN_ON
		try:
			await self.hass.services.async_call(
				HA_DOMAIN,
				service,
				{ATTR_ENTITY_ID: targets},
				blocking=True,
			)
		except HomeAssistantError as err:
			raise RestrictorError(f"Failed to {mode.value} {targets}: {err}") from err

		_LOGGER.debug(f"Applied {mode.value} to {len(targets)} targets")
