"""Tests for the three-tier settings loader."""

import json

import pytest
from pydantic import ValidationError

from relaycode.config import RelaycodeSettings, SettingsLoader, SimulationConfig
from relaycode.web.main import _resolve_port


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)


@pytest.fixture
def dirs(tmp_path):
    home = tmp_path / "home"
    workspace = tmp_path / "workspace"
    home.mkdir()
    workspace.mkdir()
    return home, workspace


def test_system_defaults(dirs):
    home, workspace = dirs
    settings = SettingsLoader(workspace_root=workspace, home=home).load()
    assert settings.server.port == 3000
    assert settings.simulation.fast_success_duration_ms == (500, 1000)
    assert settings.stream.retry_ms == 5000
    assert settings.data.seed_path is None


def test_priority_order(dirs):
    home, workspace = dirs
    _write(home / ".relaycode" / "settings.json", {"server": {"port": 4000, "host": "127.0.0.1"}})
    _write(workspace / ".relaycode" / "settings.json", {"server": {"port": 5000}})

    loader = SettingsLoader(workspace_root=workspace, home=home)
    settings = loader.load()
    assert settings.server.port == 5000
    # Deep merge keeps sibling keys from lower tiers
    assert settings.server.host == "127.0.0.1"

    assert loader.load({"server": {"port": 6000}}).server.port == 6000


def test_none_override_keeps_lower_tier(dirs):
    home, workspace = dirs
    _write(home / ".relaycode" / "settings.json", {"stream": {"retry_ms": 1000}})
    settings = SettingsLoader(workspace_root=workspace, home=home).load({"stream": {"retry_ms": None}})
    assert settings.stream.retry_ms == 1000


def test_env_var_expansion(dirs, monkeypatch):
    home, workspace = dirs
    monkeypatch.setenv("RELAYCODE_SEED_DIR", "/srv/seed")
    _write(workspace / ".relaycode" / "settings.json", {"data": {"seed_path": "${RELAYCODE_SEED_DIR}/seed.json"}})
    settings = SettingsLoader(workspace_root=workspace, home=home).load()
    assert settings.data.seed_path == "/srv/seed/seed.json"


def test_unreadable_file_is_ignored(dirs, caplog):
    home, workspace = dirs
    _write(home / ".relaycode" / "settings.json", "{not json")
    settings = SettingsLoader(workspace_root=workspace, home=home).load()
    assert settings.server.port == 3000
    assert "Ignoring unreadable settings file" in caplog.text


def test_invalid_window_rejected():
    with pytest.raises(ValidationError):
        SimulationConfig(file_delay_ms=(2000, 600))


def test_port_precedence(monkeypatch):
    settings = RelaycodeSettings(server={"port": 7000})
    monkeypatch.delenv("RELAYCODE_PORT", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    assert _resolve_port(settings) == 7000

    monkeypatch.setenv("PORT", "8000")
    assert _resolve_port(settings) == 8000

    monkeypatch.setenv("RELAYCODE_PORT", "9000")
    assert _resolve_port(settings) == 9000
