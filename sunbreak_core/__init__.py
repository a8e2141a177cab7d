"""Bedtime window and unlock state engine shared by every Sunbreak context."""
from __future__ import annotations

from .clock import Clock, FrozenClock, ZoneClock
from .controller import ShieldController, compute_target
from .engine import BedtimeEngine
from .exceptions import (
    AuthorizationUnavailable,
    ConfigurationMissing,
    InvalidSchedule,
    PersistenceUnavailable,
    RestrictorError,
    StateDivergence,
    SunbreakException,
)
from .ledger import UnlockLedger
from .models import (
    Evaluation,
    RestrictionMode,
    RestrictionState,
    ScheduleConfig,
    UnlockRecord,
)
from .restrictor import Restrictor
from .schedule import ScheduleConfigStore
from .scheduler import EvaluationScheduler
from .state_bus import DirectoryStateBus, MemoryStateBus, StateBus
from .timezone import SunriseProvider, TimezoneReconciler
from .window import is_within_bedtime_window, validate_schedule

__version__ = "1.0.0"

__all__ = [
    "AuthorizationUnavailable",
    "BedtimeEngine",
    "Clock",
    "ConfigurationMissing",
    "DirectoryStateBus",
    "Evaluation",
    "EvaluationScheduler",
    "FrozenClock",
    "InvalidSchedule",
    "MemoryStateBus",
    "PersistenceUnavailable",
    "RestrictionMode",
    "RestrictionState",
    "Restrictor",
    "RestrictorError",
    "ScheduleConfig",
    "ScheduleConfigStore",
    "ShieldController",
    "StateBus",
    "StateDivergence",
    "SunbreakException",
    "SunriseProvider",
    "TimezoneReconciler",
    "UnlockLedger",
    "UnlockRecord",
    "ZoneClock",
    "compute_target",
    "is_within_bedtime_window",
    "validate_schedule",
]
