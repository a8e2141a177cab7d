"""Constants shared by every Sunbreak execution context."""
from __future__ import annotations

from datetime import time
from typing import Final

SCHEMA_VERSION: Final = 1

# Built-in schedule used when nothing has been saved yet
DEFAULT_BEDTIME: Final = time(22, 0)
DEFAULT_WAKE: Final = time(7, 0)
DEFAULT_TIMEZONE: Final = "UTC"
DEFAULT_WAKE_BUFFER_MINUTES: Final = 30
MAX_WAKE_BUFFER_MINUTES: Final = 120

# Scheduling
DEFAULT_EVALUATION_INTERVAL: Final = 60  # seconds
MIN_EVALUATION_INTERVAL: Final = 10  # seconds
MAX_EVALUATION_INTERVAL: Final = 60  # seconds
DEBOUNCE_COOLDOWN: Final = 0.25  # seconds

# A backward clock jump larger than this is treated like a timezone change
CLOCK_ROLLBACK_TOLERANCE: Final = 120  # seconds

# Persisted layout, shared by both execution contexts
KEY_SCHEMA_VERSION: Final = "schema.version"
KEY_BEDTIME: Final = "schedule.bedtime"
KEY_WAKE: Final = "schedule.wake"
KEY_TIMEZONE: Final = "schedule.timezone"
KEY_SCHEDULE_UPDATED_AT: Final = "schedule.updatedAt"
KEY_WAKE_BUFFER: Final = "schedule.wakeBufferMinutes"
KEY_UNLOCK_DAY: Final = "unlock.day"
KEY_UNLOCK_LAST_SUCCESS: Final = "unlock.lastSuccessAt"
KEY_SELECTION: Final = "selection.targets"
KEY_RESTRICTION_STATE: Final = "restriction.state"
KEY_RESTRICTION_APPLIED_AT: Final = "restriction.lastAppliedAt"
KEY_RESTRICTION_APPLIED_BY: Final = "restriction.appliedBy"
KEY_CLOCK_LAST_SEEN: Final = "clock.lastSeenAt"

# Validation warnings surfaced to the configuration layer
WARNING_DEGENERATE_SCHEDULE: Final = "degenerate_schedule"

# Evaluation status codes
STATUS_OK: Final = "ok"
STATUS_NO_TARGETS: Final = "no_targets"
STATUS_AUTHORIZATION_UNAVAILABLE: Final = "authorization_unavailable"
STATUS_RESTRICTOR_FAILED: Final = "restrictor_failed"

# Trigger reasons
TRIGGER_INTERVAL: Final = "interval"
TRIGGER_ACTIVATION: Final = "activation"
TRIGGER_SCHEDULE_SAVED: Final = "schedule_saved"
TRIGGER_SELECTION_CHANGED: Final = "selection_changed"
TRIGGER_UNLOCK: Final = "unlock"
TRIGGER_TIMEZONE_CHANGED: Final = "timezone_changed"
