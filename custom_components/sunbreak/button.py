"""Button platform for Sunbreak integration."""
from __future__ import annotations

import logging

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN, INTEGRATION_NAME, LOGGER_NAME
from .coordinator import SunbreakDataUpdateCoordinator

_LOGGER = logging.getLogger(LOGGER_NAME)


async def async_setup_entry(
	hass: HomeAssistant,
	entry: ConfigEntry,
	async_add_entities: AddEntitiesCallback,
) -> None:
	"""Set up Sunbreak button entities from a config entry."""
	coordinator = hass.data[DOMAIN][entry.entry_id]

	async_add_entities([
		UnlockForTodayButton(coordinator, entry),
		ResetUnlockButton(coordinator, entry),
	])


class SunbreakButton(CoordinatorEntity, ButtonEntity):
	"""Common base for Sunbreak buttons."""

	_attr_has_entity_name = True

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry, key: str, name: str) -> None:
		"""Initialize the button."""
		super().__init__(coordinator)
		self._attr_unique_id = f"{entry.entry_id}_{key}"
		self._attr_name = name
		self._entry = entry

	@property
	def device_info(self) -> DeviceInfo:
		"""Return device information."""
		return DeviceInfo(
			identifiers={(DOMAIN, f"sunbreak_{self._entry.entry_id}")},
			name=self._entry.title or INTEGRATION_NAME,
			manufacturer="Sunbreak",
			model="Bedtime Engine",
		)

	@property
	def available(self) -> bool:
		"""Buttons write to the shared store and work without a fresh evaluation."""
		return True


class UnlockForTodayButton(SunbreakButton):
	"""Grant the unlock for the current day, as the daylight check does."""

	_attr_icon = "mdi:lock-open-variant-outline"

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
		super().__init__(coordinator, entry, "unlock_for_today", "Unlock for today")

	async def async_press(self) -> None:
		"""Handle the button press."""
		_LOGGER.info("Unlock for today requested from button")
		await self.coordinator.async_unlock_for_today()


class ResetUnlockButton(SunbreakButton):
	"""Clear the unlock ledger."""

	_attr_icon = "mdi:lock-reset"

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
		super().__init__(coordinator, entry, "reset_unlock", "Reset unlock")

	async def async_press(self) -> None:
		"""Handle the button press."""
		_LOGGER.info("Unlock reset requested from button")
		await self.coordinator.async_reset_unlock()
