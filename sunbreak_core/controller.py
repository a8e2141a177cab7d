"""Shield controller: decides Shielded/Cleared and drives the Restrictor."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, TypeVar

from .clock import Clock, resolve_zone
from .const import (
    KEY_RESTRICTION_APPLIED_AT,
    KEY_RESTRICTION_APPLIED_BY,
    KEY_RESTRICTION_STATE,
    STATUS_AUTHORIZATION_UNAVAILABLE,
    STATUS_NO_TARGETS,
    STATUS_OK,
    STATUS_RESTRICTOR_FAILED,
)
from .exceptions import (
    AuthorizationUnavailable,
    PersistenceUnavailable,
    RestrictorError,
    StateDivergence,
)
from .ledger import UnlockLedger
from .models import (
    Evaluation,
    RestrictionMode,
    RestrictionRecord,
    RestrictionState,
    ScheduleConfig,
)
from .restrictor import Restrictor
from .schedule import ScheduleConfigStore
from .state_bus import StateBus
from .timezone import TimezoneReconciler
from .util import format_timestamp, parse_timestamp
from .window import is_within_bedtime_window, next_transition

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

BlockingRunner = Callable[..., Awaitable[Any]]


def compute_target(in_bedtime: bool, unlocked_today: bool) -> RestrictionState:
    """Return the state both execution contexts must agree on."""
    if in_bedtime and not unlocked_today:
        return RestrictionState.SHIELDED
    return RestrictionState.CLEARED


def verify_record(record: RestrictionRecord, schedule: ScheduleConfig, context_name: str) -> None:
    """Check a state applied by another context against the current schedule.

    Only one direction is provable from stored inputs: a shield applied at an
    instant outside the window of an unchanged schedule. Cleared states may be
    explained by an unlock that has since been reset.

    Raises:
        StateDivergence: the record cannot be derived from the schedule.
    """
    if record.applied_by in (None, context_name) or record.applied_at is None:
        return
    if record.state is not RestrictionState.SHIELDED:
        return
    if schedule.updated_at is not None and schedule.updated_at >= record.applied_at:
        return

    applied_local = record.applied_at.astimezone(resolve_zone(schedule.timezone_id))
    if not is_within_bedtime_window(applied_local, schedule.bedtime, schedule.wake):
        raise StateDivergence(
            f"{record.applied_by} shielded at {applied_local.isoformat()}, outside "
            f"the {schedule.bedtime:%H:%M}-{schedule.wake:%H:%M} window"
        )


@dataclass
class _Decision:
    now: datetime
    in_bedtime: bool
    unlocked_today: bool
    target: RestrictionState
    targets: list[str]
    next_transition: datetime | None


class ShieldController:
    """Combine the window and the unlock ledger into a restriction state.

    The Restrictor is invoked with the target on every evaluation, even when
    it equals the previous state. Evaluations are serialized per context.
    """

    def __init__(
        self,
        store: ScheduleConfigStore,
        ledger: UnlockLedger,
        reconciler: TimezoneReconciler,
        bus: StateBus,
        clock: Clock,
        restrictor: Restrictor,
        context_name: str,
        run_blocking: BlockingRunner | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.reconciler = reconciler
        self.bus = bus
        self.clock = clock
        self.restrictor = restrictor
        self.context_name = context_name
        self._run_blocking_func = run_blocking
        self._lock = asyncio.Lock()
        self.last_evaluation: Evaluation | None = None

    @property
    def state(self) -> RestrictionState:
        if self.last_evaluation is None:
            return RestrictionState.UNKNOWN
        return self.last_evaluation.state

    async def _run_blocking(self, func: Callable[..., _T], *args: Any) -> _T:
        if self._run_blocking_func is None:
            return func(*args)
        return await self._run_blocking_func(func, *args)

    def load_record(self) -> RestrictionRecord:
        try:
            raw_state = self.bus.get(KEY_RESTRICTION_STATE)
            return RestrictionRecord(
                state=RestrictionState(raw_state) if raw_state else RestrictionState.UNKNOWN,
                applied_at=parse_timestamp(self.bus.get(KEY_RESTRICTION_APPLIED_AT)),
                applied_by=self.bus.get(KEY_RESTRICTION_APPLIED_BY),
            )
        except (PersistenceUnavailable, ValueError) as err:
            _LOGGER.debug("Ignoring unreadable restriction record: %s", err)
            return RestrictionRecord()

    def _decide(self) -> _Decision:
        now = self.clock.now()

        try:
            self.reconciler.check_clock(now)
        except PersistenceUnavailable as err:
            _LOGGER.warning("Clock check skipped: %s", err)

        config = self.store.load()
        in_bedtime = is_within_bedtime_window(now, config.bedtime, config.wake)
        unlocked = self.ledger.is_unlocked_today(config, now)

        try:
            verify_record(self.load_record(), config, self.context_name)
        except StateDivergence as err:
            _LOGGER.warning("State divergence between execution contexts: %s", err)

        return _Decision(
            now=now,
            in_bedtime=in_bedtime,
            unlocked_today=unlocked,
            target=compute_target(in_bedtime, unlocked),
            targets=self.store.load_selection(),
            next_transition=next_transition(now, config.bedtime, config.wake),
        )

    def _record(self, evaluation: Evaluation) -> None:
        if not evaluation.applied:
            return
        try:
            self.bus.set(KEY_RESTRICTION_STATE, evaluation.state.value)
            self.bus.set(KEY_RESTRICTION_APPLIED_AT, format_timestamp(evaluation.evaluated_at))
            self.bus.set(KEY_RESTRICTION_APPLIED_BY, self.context_name)
        except PersistenceUnavailable as err:
            _LOGGER.warning("Could not record applied state: %s", err)

    async def _async_apply(self, decision: _Decision) -> tuple[RestrictionState, str]:
        if not decision.targets:
            _LOGGER.debug("No restriction targets configured, skipping Restrictor")
            return RestrictionState.UNKNOWN, STATUS_NO_TARGETS

        if not self.restrictor.is_authorized():
            _LOGGER.warning("Restrictor authorization unavailable, skipping %s", decision.target.value)
            return RestrictionState.UNKNOWN, STATUS_AUTHORIZATION_UNAVAILABLE

        mode = RestrictionMode.for_state(decision.target)
        try:
            await self.restrictor.async_apply(decision.targets, mode)
        except AuthorizationUnavailable as err:
            _LOGGER.warning("Restrictor lost authorization: %s", err)
            return RestrictionState.UNKNOWN, STATUS_AUTHORIZATION_UNAVAILABLE
        except RestrictorError as err:
            _LOGGER.warning("Restrictor failed to %s, retrying next tick: %s", mode.value, err)
            return RestrictionState.UNKNOWN, STATUS_RESTRICTOR_FAILED
        except Exception:
            _LOGGER.exception("Unexpected Restrictor error while applying %s", mode.value)
            return RestrictionState.UNKNOWN, STATUS_RESTRICTOR_FAILED

        return decision.target, STATUS_OK

    async def async_evaluate(self) -> Evaluation:
        """Run one evaluation tick."""
        async with self._lock:
            decision = await self._run_blocking(self._decide)
            state, status = await self._async_apply(decision)

            evaluation = Evaluation(
                state=state,
                in_bedtime=decision.in_bedtime,
                unlocked_today=decision.unlocked_today,
                evaluated_at=decision.now,
                status=status,
                next_transition=decision.next_transition,
                targets=decision.targets,
            )
            await self._run_blocking(self._record, evaluation)

            previous = self.state
            if previous is not state:
                _LOGGER.info(
                    "Restriction %s -> %s (bedtime: %s, unlocked: %s)",
                    previous.value,
                    state.value,
                    decision.in_bedtime,
                    decision.unlocked_today,
                )
            else:
                _LOGGER.debug("Restriction re-applied: %s (%s)", state.value, status)

            self.last_evaluation = evaluation
            return evaluation
