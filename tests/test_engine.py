"""Tests unitaires pour la façade BedtimeEngine.

Scénarios testés :
1. query_state pour l'affichage
2. Déclenchements envoyés au planificateur
3. Deux moteurs sur le même State Bus s'accordent
"""

from unittest.mock import MagicMock

import pytest

from sunbreak_core import BedtimeEngine, DirectoryStateBus, FrozenClock, RestrictionState

from conftest import PARIS, FakeRestrictor, at


# ============================================================================
# TESTS - query_state / describe
# ============================================================================


def test_query_state(engine, clock):
    engine.set_schedule("22:00", "07:00")
    clock.set(at(10, 23))
    assert engine.query_state() == {"in_bedtime": True, "unlocked_today": False}

    engine.unlock_for_today()
    assert engine.query_state() == {"in_bedtime": True, "unlocked_today": True}


@pytest.mark.asyncio
async def test_describe(engine, clock):
    engine.set_schedule("21:30", "06:45")
    clock.set(at(10, 22))
    await engine.async_evaluate()

    status = engine.describe()

    assert status["state"] == "shielded"
    assert status["context"] == "test"
    assert status["bedtime"] == "21:30"
    assert status["wake"] == "06:45"
    assert status["timezone"] == PARIS
    assert status["schedule_is_default"] is False
    assert status["unlocked_for_day"] is None
    assert status["last_evaluation"]["state"] == "shielded"


def test_describe_before_evaluation(engine):
    status = engine.describe()
    assert status["state"] == RestrictionState.UNKNOWN.value
    assert status["last_evaluation"] is None


# ============================================================================
# TESTS - Déclenchements
# ============================================================================


def test_operations_request_evaluation(engine):
    trigger = MagicMock()
    engine.set_trigger(trigger)

    engine.set_schedule("22:00", "07:00")
    engine.unlock_for_today()
    engine.reset_unlock()
    engine.set_selection(["light.chambre"])

    reasons = [call.args[0] for call in trigger.call_args_list]
    assert reasons == ["schedule_saved", "unlock", "unlock", "selection_changed"]


def test_set_schedule_applies_pending_timezone_change(engine, clock):
    """Un changement de fuseau non signalé invalide le déverrouillage à l'enregistrement."""
    engine.unlock_for_today()
    clock.set_timezone("America/New_York")

    engine.set_schedule("22:00", "07:00")

    assert engine.ledger.load().is_empty
    assert engine.store.load().timezone_id == "America/New_York"


def test_timezone_changed_invalidates_unlock(engine, clock):
    engine.unlock_for_today()
    clock.set_timezone("Asia/Tokyo")

    assert engine.timezone_changed() is True
    assert engine.query_state()["unlocked_today"] is False


# ============================================================================
# TESTS - Deux contextes
# ============================================================================


@pytest.mark.asyncio
async def test_two_contexts_agree(tmp_path):
    """Le premier plan et le moniteur calculent le même état sur le même stockage."""
    clock = FrozenClock(at(10, 12), PARIS)
    foreground = BedtimeEngine(DirectoryStateBus(tmp_path), clock, FakeRestrictor(), context_name="homeassistant")
    background = BedtimeEngine(DirectoryStateBus(tmp_path), clock, FakeRestrictor(), context_name="monitor")

    foreground.timezone_changed()
    foreground.set_schedule("22:00", "07:00")
    foreground.set_selection(["switch.tablette"])

    clock.set(at(10, 23))
    assert (await foreground.async_evaluate()).state is RestrictionState.SHIELDED
    assert (await background.async_evaluate()).state is RestrictionState.SHIELDED

    # Déverrouillage reçu par le moniteur, vu par le premier plan
    background.unlock_for_today()
    assert (await foreground.async_evaluate()).state is RestrictionState.CLEARED
    assert (await background.async_evaluate()).state is RestrictionState.CLEARED
