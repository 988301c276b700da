"""Tests for coin_server.config loading and overrides."""

import configparser
from pathlib import Path

import pytest

from coin_server import config as config_module
from coin_server.config import (
    PROJECT_ROOT,
    ServerConfig,
    _load_from_ini,
    _parse_bool,
    _parse_list,
    get_config_status,
    load_config,
    print_config_summary,
    use_test_database,
)

_ENV_VARS = (
    "COIN_HOST",
    "COIN_PORT",
    "PORT",
    "COIN_PRODUCTION",
    "COIN_CORS_ORIGINS",
    "COIN_SHARED_SECRET",
    "BIN_SECRET",
    "COIN_DB_PATH",
    "COIN_LOG_LEVEL",
    "COIN_LOG_FORMAT",
    "COIN_TX_MAX_ATTEMPTS",
    "COIN_TX_BACKOFF_MS",
    "COIN_ALLOW_NEGATIVE_AWARDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults():
    cfg = ServerConfig()

    assert cfg.server.port == 5000
    assert cfg.security.cors_origins == ["*"]
    assert cfg.security.shared_secret == ""
    assert cfg.gate_enabled is False
    assert cfg.database.path == "data/coins.db"
    assert cfg.ledger.max_attempts == 5
    assert cfg.ledger.backoff_ms == 10
    assert cfg.ledger.allow_negative_awards is False


@pytest.mark.unit
def test_server_env_overrides(monkeypatch):
    monkeypatch.setenv("COIN_HOST", "127.0.0.1")
    monkeypatch.setenv("COIN_PORT", "8123")
    monkeypatch.setenv("COIN_CORS_ORIGINS", "https://a.example, https://b.example")

    cfg = load_config()

    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 8123
    assert cfg.security.cors_origins == ["https://a.example", "https://b.example"]


@pytest.mark.unit
def test_plain_port_env(monkeypatch):
    monkeypatch.setenv("PORT", "9000")
    assert load_config().server.port == 9000


@pytest.mark.unit
def test_secret_env_and_legacy_name(monkeypatch):
    monkeypatch.setenv("BIN_SECRET", "legacy")
    assert load_config().security.shared_secret == "legacy"

    monkeypatch.setenv("COIN_SHARED_SECRET", " primary ")
    cfg = load_config()
    assert cfg.security.shared_secret == "primary"
    assert cfg.gate_enabled is True


@pytest.mark.unit
def test_ledger_env_overrides(monkeypatch):
    monkeypatch.setenv("COIN_TX_MAX_ATTEMPTS", "9")
    monkeypatch.setenv("COIN_TX_BACKOFF_MS", "0")
    monkeypatch.setenv("COIN_ALLOW_NEGATIVE_AWARDS", "yes")

    cfg = load_config()

    assert cfg.ledger.max_attempts == 9
    assert cfg.ledger.backoff_ms == 0
    assert cfg.ledger.allow_negative_awards is True


@pytest.mark.unit
def test_logging_env_overrides(monkeypatch):
    monkeypatch.setenv("COIN_LOG_LEVEL", "debug")
    monkeypatch.setenv("COIN_LOG_FORMAT", "JSON")

    cfg = load_config()

    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.format == "json"


@pytest.mark.unit
def test_unknown_log_format_ignored(monkeypatch):
    monkeypatch.setenv("COIN_LOG_FORMAT", "xml")
    assert load_config().logging.format in ("simple", "detailed", "json")


@pytest.mark.unit
def test_ini_overrides():
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "server": {"host": "localhost", "port": "7000"},
            "security": {
                "production": "true",
                "cors_origins": "https://games.example",
                "shared_secret": "from-ini",
                "docs_enabled": "enabled",
            },
            "database": {"path": "/var/lib/coins.db"},
            "logging": {"level": "warning", "format": "simple"},
            "ledger": {
                "max_attempts": "3",
                "backoff_ms": "25",
                "busy_timeout_ms": "100",
                "allow_negative_awards": "on",
            },
        }
    )

    cfg = ServerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.server.port == 7000
    assert cfg.is_production is True
    assert cfg.docs_should_be_enabled is True
    assert cfg.security.shared_secret == "from-ini"
    assert cfg.database.absolute_path == Path("/var/lib/coins.db")
    assert cfg.logging.level == "WARNING"
    assert cfg.ledger.max_attempts == 3
    assert cfg.ledger.busy_timeout_ms == 100
    assert cfg.ledger.allow_negative_awards is True


@pytest.mark.unit
@pytest.mark.parametrize(
    ("production", "docs", "expected"),
    [
        (False, "auto", True),
        (True, "auto", False),
        (True, "enabled", True),
        (False, "disabled", False),
    ],
)
def test_docs_toggle(production, docs, expected):
    cfg = ServerConfig()
    cfg.security.production = production
    cfg.security.docs_enabled = docs
    assert cfg.docs_should_be_enabled is expected


@pytest.mark.unit
def test_relative_db_path_resolves_under_project_root():
    cfg = ServerConfig()
    assert cfg.database.absolute_path == PROJECT_ROOT / "data" / "coins.db"


@pytest.mark.unit
def test_parse_helpers():
    assert _parse_bool("Enabled") is True
    assert _parse_bool("off") is False
    assert _parse_list(" a, ,b ") == ["a", "b"]
    assert _parse_list("") == []


@pytest.mark.unit
def test_use_test_database_restores_path(tmp_path: Path):
    original = config_module.config.database.path

    with use_test_database(tmp_path / "t.db") as db_path:
        assert config_module.config.database.absolute_path == db_path

    assert config_module.config.database.path == original


@pytest.mark.unit
def test_config_status_never_contains_secret(monkeypatch):
    monkeypatch.setattr(config_module.config.security, "shared_secret", "hunter2")

    status = get_config_status()

    assert status["gate_enabled"] is True
    assert "hunter2" not in str(status)


@pytest.mark.unit
def test_print_config_summary(capsys, monkeypatch):
    monkeypatch.setattr(config_module.config.security, "shared_secret", "hunter2")

    print_config_summary()

    output = capsys.readouterr().out
    assert "Secret gate:  enabled" in output
    assert "Tx attempts:" in output
    assert "hunter2" not in output


@pytest.mark.unit
def test_reload_config_replaces_singleton(monkeypatch):
    original = config_module.config
    monkeypatch.setenv("COIN_TX_MAX_ATTEMPTS", "11")
    try:
        reloaded = config_module.reload_config()
        assert config_module.config is reloaded
        assert reloaded.ledger.max_attempts == 11
    finally:
        config_module.config = original
