"""Configuration pytest pour les tests Sunbreak.

Ce fichier contient les fixtures partagées et la configuration pytest
utilisées dans tous les tests.
"""

from datetime import datetime
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

# Ajouter le répertoire parent au PYTHONPATH pour importer sunbreak_core,
# custom_components et le paquet app du moniteur
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "sunbreak-monitor"))

from sunbreak_core import (  # noqa: E402
    BedtimeEngine,
    FrozenClock,
    MemoryStateBus,
    Restrictor,
    ScheduleConfigStore,
    UnlockLedger,
)

PARIS = "Europe/Paris"


def at(day: int, hour: int, minute: int = 0, tz: str = PARIS) -> datetime:
    """Instant du mois de mars 2025, dans le fuseau donné."""
    return datetime(2025, 3, day, hour, minute, tzinfo=ZoneInfo(tz))


class FakeRestrictor(Restrictor):
    """Restrictor enregistrant chaque appel."""

    def __init__(self, authorized: bool = True, error: Exception | None = None) -> None:
        self.authorized = authorized
        self.error = error
        self.calls = []

    def is_authorized(self) -> bool:
        return self.authorized

    async def async_apply(self, selection, mode) -> None:
        self.calls.append((list(selection), mode))
        if self.error is not None:
            raise self.error


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def clock():
    """Horloge figée au 10 mars 2025 à 12h00, heure de Paris."""
    return FrozenClock(at(10, 12), PARIS)


@pytest.fixture
def bus():
    """State Bus en mémoire."""
    return MemoryStateBus()


@pytest.fixture
def restrictor():
    return FakeRestrictor()


@pytest.fixture
def store(bus, clock):
    return ScheduleConfigStore(bus, clock)


@pytest.fixture
def ledger(bus, clock):
    return UnlockLedger(bus, clock)


@pytest.fixture
def engine(bus, clock, restrictor):
    """Moteur complet avec une cible configurée."""
    engine = BedtimeEngine(bus, clock, restrictor, context_name="test")
    engine.timezone_changed()
    engine.set_selection(["switch.tablette"])
    return engine


# Configuration pytest
def pytest_configure(config):
    """Configuration pytest."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )
