"""Constants for the Sunbreak integration."""
from __future__ import annotations

from typing import Final

# Integration constants
DOMAIN: Final = "sunbreak"
INTEGRATION_NAME: Final = "Sunbreak"
CONTEXT_NAME: Final = "homeassistant"

# Configuration
CONF_STATE_DIR: Final = "state_dir"
CONF_BEDTIME: Final = "bedtime"
CONF_WAKE: Final = "wake"
CONF_TARGETS: Final = "targets"
CONF_UPDATE_INTERVAL: Final = "update_interval"
CONF_USE_SUNRISE: Final = "use_sunrise"
CONF_WAKE_BUFFER: Final = "wake_buffer_minutes"

# Default values
DEFAULT_STATE_DIR: Final = "/share/sunbreak"
DEFAULT_BEDTIME: Final = "22:00"
DEFAULT_WAKE: Final = "07:00"
DEFAULT_UPDATE_INTERVAL: Final = 60  # seconds
DEFAULT_USE_SUNRISE: Final = False
DEFAULT_WAKE_BUFFER: Final = 30  # minutes

# Sunrise provider
SUN_ENTITY_ID: Final = "sun.sun"
ATTR_NEXT_RISING: Final = "next_rising"

# Domains that can be used as restriction targets
TARGET_DOMAINS: Final = ["switch", "input_boolean", "light", "fan", "media_player"]

# Logging
LOGGER_NAME: Final = f"custom_components.{DOMAIN}"

# Attributes
ATTR_BEDTIME: Final = "bedtime"
ATTR_WAKE: Final = "wake"
ATTR_TIMEZONE: Final = "timezone"
ATTR_STATUS: Final = "status"
ATTR_TARGETS: Final = "targets"
ATTR_UNLOCKED_FOR_DAY: Final = "unlocked_for_day"
ATTR_LAST_SUCCESS_AT: Final = "last_success_at"
ATTR_EVALUATED_AT: Final = "evaluated_at"

# Service names
SERVICE_SET_SCHEDULE: Final = "set_schedule"
SERVICE_SET_TARGETS: Final = "set_targets"
SERVICE_UNLOCK_FOR_TODAY: Final = "unlock_for_today"
SERVICE_RESET_UNLOCK: Final = "reset_unlock"
SERVICE_TIMEZONE_CHANGED: Final = "timezone_changed"
