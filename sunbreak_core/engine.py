"""Engine facade wiring the components for one execution context."""
from __future__ import annotations

from collections.abc import Callable
from datetime import time
import logging
from typing import Any

from .clock import Clock
from .const import (
    TRIGGER_SCHEDULE_SAVED,
    TRIGGER_SELECTION_CHANGED,
    TRIGGER_UNLOCK,
)
from .controller import BlockingRunner, ShieldController
from .ledger import UnlockLedger
from .models import Evaluation, RestrictionState, UnlockRecord
from .restrictor import Restrictor
from .schedule import ScheduleConfigStore
from .state_bus import StateBus
from .timezone import SunriseProvider, TimezoneReconciler
from .util import format_time_of_day
from .window import is_within_bedtime_window

_LOGGER = logging.getLogger(__name__)


class BedtimeEngine:
    """Bedtime window and unlock state engine.

    Construct one per process and hand it to whatever drives it. Both
    execution contexts build their own engine over the same State Bus.
    """

    def __init__(
        self,
        bus: StateBus,
        clock: Clock,
        restrictor: Restrictor,
        *,
        context_name: str,
        sunrise_provider: SunriseProvider | None = None,
        run_blocking: BlockingRunner | None = None,
        request_evaluation: Callable[[str], None] | None = None,
    ) -> None:
        self.bus = bus
        self.clock = clock
        self.context_name = context_name
        self._request_evaluation = request_evaluation
        self.store = ScheduleConfigStore(bus, clock)
        self.ledger = UnlockLedger(bus, clock)
        self.reconciler = TimezoneReconciler(
            self.store,
            self.ledger,
            bus,
            clock,
            request_evaluation=self.request_evaluation,
            sunrise_provider=sunrise_provider,
        )
        self.controller = ShieldController(
            self.store,
            self.ledger,
            self.reconciler,
            bus,
            clock,
            restrictor,
            context_name,
            run_blocking=run_blocking,
        )

    def set_trigger(self, request_evaluation: Callable[[str], None] | None) -> None:
        """Register the callable that schedules a re-evaluation."""
        self._request_evaluation = request_evaluation

    def request_evaluation(self, reason: str) -> None:
        if self._request_evaluation is None:
            _LOGGER.debug("No trigger registered, dropping %s request", reason)
            return
        self._request_evaluation(reason)

    @property
    def state(self) -> RestrictionState:
        return self.controller.state

    @property
    def last_evaluation(self) -> Evaluation | None:
        return self.controller.last_evaluation

    def set_schedule(self, bedtime: str | time, wake: str | time) -> list[str]:
        """Save a schedule from the configuration UI; returns validation warnings."""
        # A pending timezone change must invalidate the unlock before the
        # new schedule overwrites the marker
        self.reconciler.timezone_changed()
        warnings = self.store.save(bedtime, wake)
        self.request_evaluation(TRIGGER_SCHEDULE_SAVED)
        return warnings

    def set_selection(self, targets: list[str]) -> list[str]:
        targets = self.store.save_selection(targets)
        self.request_evaluation(TRIGGER_SELECTION_CHANGED)
        return targets

    def set_wake_buffer(self, minutes: int) -> int:
        return self.store.set_wake_buffer(minutes)

    def refresh_wake_time(self) -> None:
        self.reconciler.refresh_wake_time()
        self.request_evaluation(TRIGGER_SCHEDULE_SAVED)

    def unlock_for_today(self) -> UnlockRecord:
        """Called by the daylight verifier on success."""
        record = self.ledger.unlock_for_today()
        self.request_evaluation(TRIGGER_UNLOCK)
        return record

    def reset_unlock(self) -> None:
        self.ledger.reset_unlock()
        self.request_evaluation(TRIGGER_UNLOCK)

    def timezone_changed(self) -> bool:
        """Called by the OS-level relay when the timezone or clock changes."""
        return self.reconciler.timezone_changed()

    def query_state(self) -> dict[str, bool]:
        """Return what the status display needs."""
        now = self.clock.now()
        config = self.store.load()
        return {
            "in_bedtime": is_within_bedtime_window(now, config.bedtime, config.wake),
            "unlocked_today": self.ledger.is_unlocked_today(config, now),
        }

    def describe(self) -> dict[str, Any]:
        """Return the full status, including the last evaluation."""
        config = self.store.load()
        record = self.ledger.load()
        evaluation = self.last_evaluation
        return {
            **self.query_state(),
            "state": self.state.value,
            "context": self.context_name,
            "bedtime": format_time_of_day(config.bedtime),
            "wake": format_time_of_day(config.wake),
            "timezone": config.timezone_id,
            "schedule_is_default": config.is_default,
            "unlocked_for_day": record.unlocked_for_day.isoformat() if record.unlocked_for_day else None,
            "last_success_at": record.last_success_at.isoformat() if record.last_success_at else None,
            "last_evaluation": evaluation.as_dict() if evaluation else None,
        }

    async def async_evaluate(self) -> Evaluation:
        return await self.controller.async_evaluate()
