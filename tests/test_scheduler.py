"""Tests unitaires pour le déclencheur d'évaluations.

Scénarios testés :
1. Regroupement des demandes pendant la temporisation
2. Sérialisation des évaluations
3. Minuterie périodique et arrêt propre
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from sunbreak_core import EvaluationScheduler
from sunbreak_core.scheduler import clamp_interval


class ManualSleep:
    """Remplace asyncio.sleep : chaque tick libère une attente."""

    def __init__(self) -> None:
        self.calls = []
        self._release = asyncio.Queue()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self._release.get()

    def tick(self) -> None:
        self._release.put_nowait(None)


async def _drain(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.parametrize("value,expected", [(5, 10), (10, 10), (30, 30), (60, 60), (600, 60)])
def test_clamp_interval(value, expected):
    assert clamp_interval(value) == expected


# ============================================================================
# TESTS - Regroupement
# ============================================================================


@pytest.mark.asyncio
async def test_requests_are_coalesced():
    """Plusieurs demandes dans la temporisation donnent une seule évaluation."""
    evaluate = AsyncMock(return_value="ok")
    scheduler = EvaluationScheduler(evaluate, cooldown=60)

    scheduler.request("unlock")
    scheduler.request("schedule_saved")
    scheduler.request("unlock")
    result = await scheduler.async_flush()

    assert result == "ok"
    evaluate.assert_awaited_once()
    assert scheduler.evaluation_count == 1


@pytest.mark.asyncio
async def test_debounce_fires_after_cooldown():
    evaluate = AsyncMock()
    scheduler = EvaluationScheduler(evaluate, cooldown=0.01)

    scheduler.request("unlock")
    scheduler.request("unlock")
    await asyncio.sleep(0.1)

    evaluate.assert_awaited_once()


@pytest.mark.asyncio
async def test_flush_without_requests_does_nothing():
    evaluate = AsyncMock()
    scheduler = EvaluationScheduler(evaluate)

    await scheduler.async_flush()

    evaluate.assert_not_awaited()


@pytest.mark.asyncio
async def test_evaluate_now_absorbs_pending_requests():
    evaluate = AsyncMock()
    scheduler = EvaluationScheduler(evaluate, cooldown=0.01)

    scheduler.request("unlock")
    await scheduler.async_evaluate_now("timezone_changed")
    await asyncio.sleep(0.05)

    evaluate.assert_awaited_once()


@pytest.mark.asyncio
async def test_tick_absorbs_pending_requests():
    """Une évaluation périodique sert aussi les demandes en attente."""
    evaluate = AsyncMock()
    scheduler = EvaluationScheduler(evaluate, cooldown=0.01)

    scheduler.request("unlock")
    await scheduler.async_tick()
    await asyncio.sleep(0.05)

    evaluate.assert_awaited_once()
    assert scheduler.evaluation_count == 1


# ============================================================================
# TESTS - Sérialisation et erreurs
# ============================================================================


@pytest.mark.asyncio
async def test_evaluations_are_serialized():
    """Deux déclenchements simultanés ne se chevauchent jamais."""
    running = 0
    peak = 0

    async def evaluate():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    scheduler = EvaluationScheduler(evaluate)
    await asyncio.gather(scheduler.async_tick(), scheduler.async_tick(), scheduler.async_tick())

    assert peak == 1
    assert scheduler.evaluation_count == 3


@pytest.mark.asyncio
async def test_evaluation_error_does_not_stop_scheduler():
    evaluate = AsyncMock(side_effect=[RuntimeError("boom"), "ok"])
    scheduler = EvaluationScheduler(evaluate)

    assert await scheduler.async_tick() is None
    assert await scheduler.async_tick() == "ok"


# ============================================================================
# TESTS - Minuterie
# ============================================================================


@pytest.mark.asyncio
async def test_timer_start_and_stop():
    """Activation immédiate, puis une évaluation par intervalle."""
    evaluate = AsyncMock()
    sleep = ManualSleep()
    scheduler = EvaluationScheduler(evaluate, interval=5, sleep=sleep)

    await scheduler.async_start()
    assert scheduler.running is True
    assert evaluate.await_count == 1

    await _drain()
    assert sleep.calls == [10]

    sleep.tick()
    await _drain()
    assert evaluate.await_count == 2

    await scheduler.async_stop()
    assert scheduler.running is False
