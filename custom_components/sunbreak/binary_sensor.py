"""Binary sensor platform for Sunbreak integration."""
from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.binary_sensor import (
	BinarySensorDeviceClass,
	BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo, EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from sunbreak_core.const import STATUS_OK

from .const import (
	ATTR_BEDTIME,
	ATTR_LAST_SUCCESS_AT,
	ATTR_STATUS,
	ATTR_TARGETS,
	ATTR_TIMEZONE,
	ATTR_UNLOCKED_FOR_DAY,
	ATTR_WAKE,
	DOMAIN,
	INTEGRATION_NAME,
	LOGGER_NAME,
)
from .coordinator import SunbreakDataUpdateCoordinator

_LOGGER = logging.getLogger(LOGGER_NAME)


async def async_setup_entry(
	hass: HomeAssistant,
	entry: ConfigEntry,
	async_add_entities: AddEntitiesCallback,
) -> None:
	"""Set up Sunbreak binary sensor entities from a config entry."""
	coordinator = hass.data[DOMAIN][entry.entry_id]

	entities = [
		SunbreakBedtimeSensor(coordinator, entry),
		SunbreakUnlockedSensor(coordinator, entry),
		SunbreakRestrictorProblemSensor(coordinator, entry),
	]

	async_add_entities(entities)
	_LOGGER.debug("Sunbreak binary sensors set up successfully")


class SunbreakBinarySensor(CoordinatorEntity, BinarySensorEntity):
	"""Common base for Sunbreak binary sensors."""

	_attr_has_entity_name = True

	def __init__(
		self,
		coordinator: SunbreakDataUpdateCoordinator,
		entry: ConfigEntry,
		key: str,
		name: str,
	) -> None:
		super().__init__(coordinator)
		self._attr_unique_id = f"{entry.entry_id}_{key}"
		self._attr_name = name
		self._entry = entry

	@property
	def device_info(self) -> DeviceInfo:
		"""Return device information for this sensor."""
		return DeviceInfo(
			identifiers={(DOMAIN, f"sunbreak_{self._entry.entry_id}")},
			name=self._entry.title or INTEGRATION_NAME,
			manufacturer="Sunbreak",
			model="Bedtime Engine",
		)


class SunbreakBedtimeSensor(SunbreakBinarySensor):
	"""On while the current time is inside the bedtime window."""

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
		super().__init__(coordinator, entry, "in_bedtime", "Bedtime")

	@property
	def is_on(self) -> bool:
		return bool(self.coordinator.data and self.coordinator.data.get("in_bedtime"))

	@property
	def icon(self) -> str:
		return "mdi:weather-night" if self.is_on else "mdi:white-balance-sunny"

	@property
	def extra_state_attributes(self) -> dict[str, Any]:
		data = self.coordinator.data or {}
		return {
			ATTR_BEDTIME: data.get("bedtime"),
			ATTR_WAKE: data.get("wake"),
			ATTR_TIMEZONE: data.get("timezone"),
		}


class SunbreakUnlockedSensor(SunbreakBinarySensor):
	"""On when the device has been unlocked for the current day."""

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
		super().__init__(coordinator, entry, "unlocked_today", "Unlocked today")

	@property
	def is_on(self) -> bool:
		return bool(self.coordinator.data and self.coordinator.data.get("unlocked_today"))

	@property
	def icon(self) -> str:
		return "mdi:lock-open-variant" if self.is_on else "mdi:lock"

	@property
	def extra_state_attributes(self) -> dict[str, Any]:
		data = self.coordinator.data or {}
		return {
			ATTR_UNLOCKED_FOR_DAY: data.get("unlocked_for_day"),
			ATTR_LAST_SUCCESS_AT: data.get("last_success_at"),
		}


class SunbreakRestrictorProblemSensor(SunbreakBinarySensor):
	"""On when the last evaluation could not apply the restriction."""

	_attr_device_class = BinarySensorDeviceClass.PROBLEM
	_attr_entity_category = EntityCategory.DIAGNOSTIC

	def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
		super().__init__(coordinator, entry, "restrictor_problem", "Restrictor problem")

	@property
	def is_on(self) -> bool:
		if not self.coordinator.last_update_success:
			return True
		return (self.coordinator.data or {}).get("status") != STATUS_OK

	@property
	def available(self) -> bool:
		"""Always available to report evaluation failures."""
		return True

	@property
	def extra_state_attributes(self) -> dict[str, Any]:
		data = self.coordinator.data or {}
		return {
			ATTR_STATUS: data.get("status"),
			ATTR_TARGETS: data.get("targets", []),
		}
