"""Tests unitaires pour le State Bus et le stockage de l'horaire.

Scénarios testés :
1. Stockage fichier : écriture atomique, clés invalides, répertoire inutilisable
2. Horaire par défaut, enregistrement, validation
3. Version de schéma plus récente : valeurs par défaut sans écrasement
4. Sélection et marge de réveil
"""

from datetime import time
import json

import pytest

from sunbreak_core import (
    DirectoryStateBus,
    InvalidSchedule,
    PersistenceUnavailable,
)
from sunbreak_core.const import (
    KEY_BEDTIME,
    KEY_SCHEMA_VERSION,
    KEY_SELECTION,
    KEY_WAKE_BUFFER,
)


# ============================================================================
# TESTS - DirectoryStateBus
# ============================================================================


def test_directory_bus_roundtrip(tmp_path):
    bus = DirectoryStateBus(tmp_path / "sunbreak")

    assert bus.get("unlock.day") is None
    bus.set("unlock.day", "2025-03-10")
    assert bus.get("unlock.day") == "2025-03-10"
    assert (tmp_path / "sunbreak" / "unlock.day").read_text() == "2025-03-10"

    bus.delete("unlock.day")
    bus.delete("unlock.day")
    assert bus.get("unlock.day") is None


def test_directory_bus_leaves_no_temp_files(tmp_path):
    bus = DirectoryStateBus(tmp_path)
    bus.set("schedule.bedtime", "22:00")
    bus.set("schedule.bedtime", "21:30")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["schedule.bedtime"]
    assert bus.snapshot() == {"schedule.bedtime": "21:30"}


def test_directory_bus_two_instances_share_keys(tmp_path):
    """Deux contextes sur le même répertoire voient les mêmes clés."""
    foreground = DirectoryStateBus(tmp_path)
    background = DirectoryStateBus(tmp_path)

    foreground.set("schedule.bedtime", "22:00")
    background.set("unlock.day", "2025-03-10")

    assert background.get("schedule.bedtime") == "22:00"
    assert foreground.snapshot() == {"schedule.bedtime": "22:00", "unlock.day": "2025-03-10"}


@pytest.mark.parametrize("key", ["../etc", "a/b", "", ".hidden", "a..b"])
def test_directory_bus_rejects_invalid_keys(tmp_path, key):
    with pytest.raises(ValueError):
        DirectoryStateBus(tmp_path).set(key, "x")


def test_directory_bus_unusable_path(tmp_path):
    """Un fichier à la place du répertoire rend le stockage indisponible."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    bus = DirectoryStateBus(blocker)

    with pytest.raises(PersistenceUnavailable):
        bus.set("unlock.day", "2025-03-10")
    with pytest.raises(PersistenceUnavailable):
        bus.get("unlock.day")


# ============================================================================
# TESTS - ScheduleConfigStore
# ============================================================================


def test_defaults_when_nothing_saved(store):
    config = store.load()
    assert config.is_default is True
    assert config.bedtime == time(22, 0)
    assert config.wake == time(7, 0)
    assert config.timezone_id == "Europe/Paris"


def test_save_and_load(store, clock):
    assert store.save("21:30", "06:45:00") == []

    config = store.load()
    assert config.is_default is False
    assert config.bedtime == time(21, 30)
    assert config.wake == time(6, 45)
    assert config.updated_at == clock.now()


def test_save_degenerate_returns_warning(store):
    assert store.save("08:00", "08:00") == ["degenerate_schedule"]
    assert store.load().bedtime == time(8, 0)


@pytest.mark.parametrize("value", ["25:00", "7h", "", None, "12:60"])
def test_save_invalid_time(store, value):
    with pytest.raises(InvalidSchedule):
        store.save(value, "07:00")


def test_corrupt_schedule_falls_back_to_defaults(store, bus):
    bus.set(KEY_BEDTIME, "bientôt")
    bus.set("schedule.wake", "07:00")
    assert store.load().is_default is True


def test_newer_schema_not_overwritten(store, bus):
    """Une version plus récente donne les valeurs par défaut en mémoire seulement."""
    bus.set(KEY_SCHEMA_VERSION, "2")
    bus.set(KEY_BEDTIME, "20:00")
    bus.set("schedule.wake", "06:00")

    config = store.load()

    assert config.is_default is True
    assert config.bedtime == time(22, 0)
    assert bus.get(KEY_BEDTIME) == "20:00"
    assert bus.get(KEY_SCHEMA_VERSION) == "2"


# ============================================================================
# TESTS - Sélection et marge
# ============================================================================


def test_selection_roundtrip(store, bus):
    store.save_selection(["switch.tablette", "light.chambre"])
    assert json.loads(bus.get(KEY_SELECTION)) == ["switch.tablette", "light.chambre"]
    assert store.load_selection() == ["switch.tablette", "light.chambre"]


def test_corrupt_selection_is_empty(store, bus):
    bus.set(KEY_SELECTION, "{pas du json")
    assert store.load_selection() == []


def test_invalid_selection_rejected(store):
    with pytest.raises(InvalidSchedule):
        store.save_selection(["switch.ok", ""])


def test_wake_buffer_clamped(store, bus):
    assert store.set_wake_buffer(500) == 120
    assert store.set_wake_buffer(-5) == 0
    assert bus.get(KEY_WAKE_BUFFER) == "0"
