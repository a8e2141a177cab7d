"""Sensor platform for Sunbreak integration."""
from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from sunbreak_core import RestrictionState

from .const import (
    ATTR_EVALUATED_AT,
    ATTR_STATUS,
    ATTR_TARGETS,
    DOMAIN,
    INTEGRATION_NAME,
    LOGGER_NAME,
)
from .coordinator import SunbreakDataUpdateCoordinator

_LOGGER = logging.getLogger(LOGGER_NAME)

# Icon per restriction state
STATE_ICONS = {
    RestrictionState.SHIELDED.value: "mdi:shield-moon",
    RestrictionState.CLEARED.value: "mdi:shield-off-outline",
    RestrictionState.UNKNOWN.value: "mdi:shield-alert-outline",
}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Sunbreak sensor entities from a config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id]

    entities = [
        RestrictionStateSensor(coordinator, entry),
        NextTransitionSensor(coordinator, entry),
    ]

    _LOGGER.debug(f"Created {len(entities)} sensor entities")
    async_add_entities(entities)


class SunbreakSensor(CoordinatorEntity, SensorEntity):
    """Common base for Sunbreak sensors."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry, key: str, name: str) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        self._attr_name = name
        self._entry = entry

    @property
    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            identifiers={(DOMAIN, f"sunbreak_{self._entry.entry_id}")},
            name=self._entry.title or INTEGRATION_NAME,
            manufacturer="Sunbreak",
            model="Bedtime Engine",
        )


class RestrictionStateSensor(SunbreakSensor):
    """Sensor showing the state applied by the last evaluation."""

    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [state.value for state in RestrictionState]

    def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "restriction_state", "Restriction")

    @property
    def native_value(self) -> str:
        if not self.coordinator.data:
            return RestrictionState.UNKNOWN.value
        return self.coordinator.data.get("state", RestrictionState.UNKNOWN.value)

    @property
    def icon(self) -> str:
        return STATE_ICONS.get(self.native_value, "mdi:shield-alert-outline")

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data or {}
        evaluation = data.get("last_evaluation") or {}
        return {
            ATTR_STATUS: data.get("status"),
            ATTR_TARGETS: data.get("targets", []),
            ATTR_EVALUATED_AT: evaluation.get("evaluated_at"),
            "schedule_is_default": data.get("schedule_is_default"),
        }


class NextTransitionSensor(SunbreakSensor):
    """Sensor showing when bedtime next starts or ends."""

    _attr_device_class = SensorDeviceClass.TIMESTAMP
    _attr_icon = "mdi:clock-outline"

    def __init__(self, coordinator: SunbreakDataUpdateCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "next_transition", "Next transition")

    @property
    def native_value(self) -> datetime | None:
        if not self.coordinator.data:
            return None
        # None when bedtime equals wake time
        return self.coordinator.data.get("next_transition")
