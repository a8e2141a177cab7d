"""Tests pour le service moniteur (FastAPI) et son Restrictor webhook.

Scénarios testés :
1. Chargement de la configuration (options.json + variables SUNBREAK_*)
2. WebhookRestrictor : succès, refus d'autorisation, erreurs réseau
3. Endpoints HTTP : état, déverrouillage, horaire, fuseau
"""

import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient  # noqa: E402

from sunbreak_core import (  # noqa: E402
    AuthorizationUnavailable,
    BedtimeEngine,
    DirectoryStateBus,
    FrozenClock,
    RestrictionMode,
    RestrictorError,
    ZoneClock,
)
from sunbreak_core.const import DEBOUNCE_COOLDOWN, KEY_SELECTION, KEY_TIMEZONE  # noqa: E402

from app.config import MonitorConfig, load_config  # noqa: E402
from app.restrictor import WebhookRestrictor  # noqa: E402

from conftest import PARIS, FakeRestrictor, at  # noqa: E402


# ============================================================================
# TESTS - Configuration
# ============================================================================


def test_load_config_defaults(tmp_path):
    config = load_config(tmp_path / "absent.json", environ={})
    assert config == MonitorConfig()


def test_load_config_options_and_env(tmp_path):
    """Les variables d'environnement l'emportent sur options.json."""
    options = tmp_path / "options.json"
    options.write_text(json.dumps({
        "log_level": "debug",
        "interval": 30,
        "webhook_url": "http://enforcer.local/hook",
    }))

    config = load_config(options, environ={"SUNBREAK_INTERVAL": "15", "TZ": PARIS})

    assert config.log_level == "debug"
    assert config.interval == 15
    assert config.webhook_url == "http://enforcer.local/hook"
    assert config.timezone == PARIS


def test_load_config_invalid_values(tmp_path):
    options = tmp_path / "options.json"
    options.write_text("{pas du json")

    config = load_config(options, environ={"SUNBREAK_PORT": "http"})

    assert config.port == MonitorConfig.port


# ============================================================================
# TESTS - Fuseau du moniteur
# ============================================================================


def _ha_unlocked_in_paris(bus):
    """Home Assistant enregistre un horaire à Paris puis déverrouille."""
    ha = BedtimeEngine(bus, FrozenClock(at(10, 12), PARIS), FakeRestrictor(), context_name="homeassistant")
    ha.timezone_changed()
    ha.set_schedule("22:00", "07:00")
    ha.unlock_for_today()
    return ha


def test_monitor_follows_stored_timezone(tmp_path, monkeypatch):
    """Sans fuseau configuré, le moniteur lit celui enregistré par Home Assistant."""
    from app import main

    monkeypatch.setattr(main.config, "timezone", None)
    bus = DirectoryStateBus(tmp_path)
    ha = _ha_unlocked_in_paris(bus)

    clock = ZoneClock(main._timezone_provider(bus))
    monitor_engine = BedtimeEngine(bus, clock, FakeRestrictor(), context_name="monitor")

    assert clock.timezone_id() == PARIS
    assert monitor_engine.timezone_changed() is False
    assert ha.ledger.load().unlocked_for_day == at(10, 12).date()
    assert bus.get(KEY_TIMEZONE) == PARIS


def test_configured_timezone_wins(tmp_path, monkeypatch):
    from app import main

    monkeypatch.setattr(main.config, "timezone", "Asia/Tokyo")
    bus = DirectoryStateBus(tmp_path)
    _ha_unlocked_in_paris(bus)

    assert main._timezone_provider(bus)() == "Asia/Tokyo"


def test_no_stored_timezone_falls_back_to_utc(tmp_path, monkeypatch):
    from app import main

    monkeypatch.setattr(main.config, "timezone", None)
    clock = ZoneClock(main._timezone_provider(DirectoryStateBus(tmp_path)))

    assert clock.timezone_id() == "UTC"


# ============================================================================
# TESTS - WebhookRestrictor
# ============================================================================


def _mock_session(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.post = MagicMock(side_effect=error)
        return session
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    session.post = MagicMock(return_value=response)
    return session


def _response_error(status):
    return aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=status)


def test_webhook_authorization_requires_url():
    assert WebhookRestrictor(None).is_authorized() is False
    assert WebhookRestrictor("http://enforcer.local/hook").is_authorized() is True


@pytest.mark.asyncio
async def test_webhook_posts_mode_and_targets():
    restrictor = WebhookRestrictor("http://enforcer.local/hook", context_name="monitor")
    response = MagicMock()
    response.status = 200
    session = _mock_session(response)

    with patch.object(restrictor, "_get_session", AsyncMock(return_value=session)):
        await restrictor.async_apply(["switch.tablette"], RestrictionMode.SHIELD)

    session.post.assert_called_once_with(
        "http://enforcer.local/hook",
        json={"mode": "shield", "targets": ["switch.tablette"], "context": "monitor"},
    )
    response.raise_for_status.assert_called_once()


@pytest.mark.asyncio
async def test_webhook_rejected_credentials():
    restrictor = WebhookRestrictor("http://enforcer.local/hook", token="secret")
    response = MagicMock()
    response.status = 401
    response.raise_for_status.side_effect = _response_error(401)

    with patch.object(restrictor, "_get_session", AsyncMock(return_value=_mock_session(response))):
        with pytest.raises(AuthorizationUnavailable):
            await restrictor.async_apply(["switch.tablette"], RestrictionMode.CLEAR)


@pytest.mark.asyncio
async def test_webhook_server_error():
    restrictor = WebhookRestrictor("http://enforcer.local/hook")
    response = MagicMock()
    response.status = 500
    response.raise_for_status.side_effect = _response_error(500)

    with patch.object(restrictor, "_get_session", AsyncMock(return_value=_mock_session(response))):
        with pytest.raises(RestrictorError):
            await restrictor.async_apply(["switch.tablette"], RestrictionMode.SHIELD)


@pytest.mark.asyncio
async def test_webhook_unreachable():
    restrictor = WebhookRestrictor("http://enforcer.local/hook")
    session = _mock_session(error=aiohttp.ClientConnectionError("refused"))

    with patch.object(restrictor, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(RestrictorError):
            await restrictor.async_apply(["switch.tablette"], RestrictionMode.SHIELD)


# ============================================================================
# FIXTURES - Application
# ============================================================================


@pytest.fixture
def monitor(tmp_path, monkeypatch):
    """Application du moniteur sur un répertoire temporaire, horloge figée à 23h."""
    from app import main

    clock = FrozenClock(at(10, 23), PARIS)
    fake = FakeRestrictor()
    fake.async_cleanup = AsyncMock()

    DirectoryStateBus(tmp_path).set(KEY_SELECTION, json.dumps(["switch.tablette"]))

    monkeypatch.setattr(main.config, "share_dir", str(tmp_path))
    monkeypatch.setattr(main.config, "timezone", PARIS)
    monkeypatch.setattr(main, "ZoneClock", lambda provider: clock)
    monkeypatch.setattr(main, "WebhookRestrictor", lambda *args, **kwargs: fake)

    with TestClient(main.app) as client:
        yield client, clock, fake, main


# ============================================================================
# TESTS - Endpoints
# ============================================================================


def test_health(monitor):
    client, _, _, _ = monitor
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_state_shielded_at_night(monitor):
    """Horaire par défaut 22:00-07:00, 23h : restriction active."""
    client, _, fake, _ = monitor

    data = client.get("/api/state").json()

    assert data["in_bedtime"] is True
    assert data["state"] == "shielded"
    assert data["context"] == "monitor"
    assert fake.calls[0] == (["switch.tablette"], RestrictionMode.SHIELD)


def test_unlock_and_reset(monitor):
    client, _, fake, _ = monitor

    data = client.post("/api/unlock").json()
    assert data["unlocked_today"] is True
    assert data["state"] == "cleared"
    assert fake.calls[-1] == (["switch.tablette"], RestrictionMode.CLEAR)

    data = client.post("/api/unlock/reset").json()
    assert data["unlocked_today"] is False
    assert data["state"] == "shielded"


def test_api_call_evaluates_once(monitor):
    """Un appel API évalue immédiatement, sans seconde évaluation différée."""
    client, _, fake, main = monitor
    count = main.scheduler.evaluation_count
    calls = len(fake.calls)

    client.post("/api/unlock")
    time.sleep(DEBOUNCE_COOLDOWN * 3)

    assert main.scheduler.evaluation_count == count + 1
    assert len(fake.calls) == calls + 1


def test_set_schedule(monitor):
    client, _, _, _ = monitor

    data = client.post("/api/schedule", json={"bedtime": "09:00", "wake": "17:00"}).json()

    assert data["warnings"] == []
    assert data["bedtime"] == "09:00"
    assert data["in_bedtime"] is False
    assert data["state"] == "cleared"


def test_set_schedule_degenerate_warns(monitor):
    client, _, _, _ = monitor
    data = client.post("/api/schedule", json={"bedtime": "08:00", "wake": "08:00"}).json()
    assert data["warnings"] == ["degenerate_schedule"]


def test_set_schedule_invalid(monitor):
    client, _, _, _ = monitor
    response = client.post("/api/schedule", json={"bedtime": "25:00", "wake": "07:00"})
    assert response.status_code == 400


def test_timezone_changed(monitor):
    """Le changement de fuseau invalide le déverrouillage du moniteur."""
    client, clock, _, main = monitor
    client.post("/api/unlock")
    clock.set_timezone("Asia/Tokyo")

    data = client.post("/api/timezone-changed", json={"timezone": "Asia/Tokyo"}).json()

    assert data["changed"] is True
    assert data["unlocked_today"] is False
    assert main.config.timezone == "Asia/Tokyo"


def test_timezone_unchanged_without_body(monitor):
    client, _, _, _ = monitor
    data = client.post("/api/timezone-changed").json()
    assert data["changed"] is False
