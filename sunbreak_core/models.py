"""Data models for the Sunbreak engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from .const import (
    DEFAULT_BEDTIME,
    DEFAULT_TIMEZONE,
    DEFAULT_WAKE,
    DEFAULT_WAKE_BUFFER_MINUTES,
    STATUS_OK,
)


class RestrictionState(str, Enum):
    """Derived restriction state, recomputed on every evaluation."""

    SHIELDED = "shielded"
    CLEARED = "cleared"
    UNKNOWN = "unknown"


class RestrictionMode(str, Enum):
    """Mode handed to the Restrictor."""

    SHIELD = "shield"
    CLEAR = "clear"

    @classmethod
    def for_state(cls, state: RestrictionState) -> RestrictionMode:
        """Return the mode that enforces the given state."""
        if state is RestrictionState.SHIELDED:
            return cls.SHIELD
        return cls.CLEAR


@dataclass(frozen=True)
class ScheduleConfig:
    """Bedtime and wake times-of-day plus the timezone they were saved in."""

    bedtime: time = DEFAULT_BEDTIME
    wake: time = DEFAULT_WAKE
    timezone_id: str = DEFAULT_TIMEZONE
    wake_buffer_minutes: int = DEFAULT_WAKE_BUFFER_MINUTES
    updated_at: datetime | None = None
    is_default: bool = False


@dataclass(frozen=True)
class UnlockRecord:
    """One-shot day unlock."""

    unlocked_for_day: date | None = None
    last_success_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.unlocked_for_day is None


@dataclass(frozen=True)
class RestrictionRecord:
    """Bookkeeping of the last state a context applied."""

    state: RestrictionState = RestrictionState.UNKNOWN
    applied_at: datetime | None = None
    applied_by: str | None = None


@dataclass
class Evaluation:
    """Result of one evaluation tick."""

    state: RestrictionState
    in_bedtime: bool
    unlocked_today: bool
    evaluated_at: datetime
    status: str = STATUS_OK
    next_transition: datetime | None = None
    targets: list[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.state is not RestrictionState.UNKNOWN

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON friendly representation."""
        return {
            "state": self.state.value,
            "in_bedtime": self.in_bedtime,
            "unlocked_today": self.unlocked_today,
            "status": self.status,
            "evaluated_at": self.evaluated_at.isoformat(),
            "next_transition": self.next_transition.isoformat() if self.next_transition else None,
            "targets": list(self.targets),
        }
