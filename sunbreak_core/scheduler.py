"""Periodic and event driven evaluation trigger."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

from .const import (
    DEBOUNCE_COOLDOWN,
    DEFAULT_EVALUATION_INTERVAL,
    MAX_EVALUATION_INTERVAL,
    MIN_EVALUATION_INTERVAL,
    TRIGGER_ACTIVATION,
    TRIGGER_INTERVAL,
)

_LOGGER = logging.getLogger(__name__)


def clamp_interval(seconds: float) -> float:
    """Keep the evaluation interval between 10 and 60 seconds."""
    return max(MIN_EVALUATION_INTERVAL, min(MAX_EVALUATION_INTERVAL, float(seconds)))


class EvaluationScheduler:
    """Feed one serialized evaluation path from a timer and event triggers.

    Event triggers are coalesced: every request made within the cooldown
    results in a single evaluation. Evaluations are never cancelled once
    started; they are cheap and idempotent.
    """

    def __init__(
        self,
        evaluate: Callable[[], Awaitable[Any]],
        *,
        interval: float = DEFAULT_EVALUATION_INTERVAL,
        cooldown: float = DEBOUNCE_COOLDOWN,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._evaluate = evaluate
        self.interval = clamp_interval(interval)
        self.cooldown = cooldown
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._pending: set[str] = set()
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._timer_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self.evaluation_count = 0
        self.last_result: Any = None

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def request(self, reason: str) -> None:
        """Ask for an evaluation after the debounce cooldown."""
        self._pending.add(reason)
        if self._debounce_handle is None:
            loop = asyncio.get_running_loop()
            self._debounce_handle = loop.call_later(self.cooldown, self._debounce_fired)

    def _spawn(self, reason: str | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._async_run(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _debounce_fired(self) -> None:
        self._debounce_handle = None
        self._spawn()

    async def _async_run(self, reason: str | None = None) -> Any:
        async with self._lock:
            reasons = set(self._pending)
            self._pending.clear()
            # Pending requests are served by this run
            if self._debounce_handle is not None:
                self._debounce_handle.cancel()
                self._debounce_handle = None
            if reason is not None:
                reasons.add(reason)
            if not reasons:
                return self.last_result

            _LOGGER.debug("Evaluating (%s)", ", ".join(sorted(reasons)))
            try:
                self.last_result = await self._evaluate()
            except Exception:
                _LOGGER.exception("Evaluation failed, retrying on next trigger")
            self.evaluation_count += 1
            return self.last_result

    async def async_tick(self) -> Any:
        """Run the interval evaluation now."""
        return await self._async_run(TRIGGER_INTERVAL)

    async def async_flush(self) -> Any:
        """Run pending requests now instead of waiting for the cooldown."""
        return await self.async_evaluate_now()

    async def async_evaluate_now(self, reason: str | None = None) -> Any:
        """Evaluate immediately, absorbing requests still waiting on the cooldown."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        return await self._async_run(reason)

    async def _async_timer_loop(self) -> None:
        while True:
            await self._sleep(self.interval)
            # Stopping the timer must not cancel an evaluation in flight
            await asyncio.shield(self._spawn(TRIGGER_INTERVAL))

    async def async_start(self) -> Any:
        """Evaluate once for activation, then start the interval timer."""
        result = await self._async_run(TRIGGER_ACTIVATION)
        if not self.running:
            self._timer_task = asyncio.get_running_loop().create_task(self._async_timer_loop())
            _LOGGER.debug("Evaluation timer started (every %ss)", self.interval)
        return result

    async def async_stop(self) -> None:
        """Stop the timer; evaluations already running are allowed to finish."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        _LOGGER.debug("Evaluation timer stopped")
