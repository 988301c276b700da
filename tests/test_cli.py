"""
Unit tests for the CLI module (coin_server/cli.py).

Tests cover:
- Command parsing and help
- init-db and verify-ledger against a temporary database
- run and balance with the server and HTTP client mocked
"""

import argparse
import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from coin_server import cli
from coin_server.db.store import LedgerStore
from coin_server.ledger import award_party_result
from tests.constants import OTHER_PHONE, PHONE

# ============================================================================
# PARSING
# ============================================================================


@pytest.mark.unit
def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "coin-server" in capsys.readouterr().out


@pytest.mark.unit
def test_run_arguments_are_forwarded():
    with patch("coin_server.api.server.start_server") as mock_start:
        assert cli.main(["run", "--host", "127.0.0.1", "--port", "8123"]) == 0
    mock_start.assert_called_once_with(host="127.0.0.1", port=8123)


@pytest.mark.unit
def test_run_handles_keyboard_interrupt(capsys):
    with patch("coin_server.api.server.start_server", side_effect=KeyboardInterrupt):
        assert cli.cmd_run(argparse.Namespace(host=None, port=None)) == 0
    assert "Server stopped" in capsys.readouterr().out


@pytest.mark.unit
def test_run_reports_bind_failure(capsys):
    with patch("coin_server.api.server.start_server", side_effect=OSError("in use")):
        assert cli.cmd_run(argparse.Namespace(host=None, port=5000)) == 1
    assert "in use" in capsys.readouterr().err


# ============================================================================
# DATABASE COMMANDS
# ============================================================================


@pytest.mark.db
def test_init_db_creates_database(temp_db_path: Path, capsys):
    assert cli.main(["init-db"]) == 0
    assert temp_db_path.exists()
    assert "initialized" in capsys.readouterr().out


@pytest.mark.db
def test_verify_ledger_clean(store: LedgerStore, capsys):
    award_party_result(store, PHONE, "run", coins=5)

    assert cli.main(["verify-ledger"]) == 0
    assert "All ledgers balanced" in capsys.readouterr().out


@pytest.mark.db
def test_verify_ledger_single_player(store: LedgerStore, capsys):
    award_party_result(store, PHONE, "run", coins=5)

    assert cli.main(["verify-ledger", "--phone", PHONE]) == 0
    assert f"OK       {PHONE}: 5 coins over 1 events" in capsys.readouterr().out


@pytest.mark.db
def test_verify_ledger_mismatch(store: LedgerStore, capsys):
    award_party_result(store, PHONE, "run", coins=5)
    award_party_result(store, OTHER_PHONE, "run", coins=5)
    connection = sqlite3.connect(store.db_path)
    connection.execute("UPDATE players SET coins = 1 WHERE phone = ?", (OTHER_PHONE,))
    connection.commit()
    connection.close()

    assert cli.main(["verify-ledger"]) == 1
    captured = capsys.readouterr()
    assert f"MISMATCH {OTHER_PHONE}" in captured.out
    assert "1 ledger(s) out of balance" in captured.err


@pytest.mark.db
def test_verify_ledger_invalid_phone(temp_db_path: Path, capsys):
    assert cli.main(["verify-ledger", "--phone", "abc"]) == 1
    assert "phone required" in capsys.readouterr().err


# ============================================================================
# CLIENT COMMANDS
# ============================================================================


@pytest.mark.unit
def test_balance_prints_coins(capsys):
    client = MagicMock()
    client.get_coins.return_value = {
        "success": True,
        "data": {"coins": 12},
        "error": None,
        "status_code": 200,
    }
    with patch("coin_server.client.api_client.CoinAPIClient", return_value=client) as factory:
        assert cli.main(["balance", "--phone", PHONE, "--server-url", "http://x:1"]) == 0

    factory.assert_called_once_with(server_url="http://x:1")
    client.get_coins.assert_called_once_with(PHONE)
    assert capsys.readouterr().out.strip() == "12"


@pytest.mark.unit
def test_balance_reports_errors(capsys):
    client = MagicMock()
    client.get_coins.return_value = {
        "success": False,
        "data": None,
        "error": "unauthorized",
        "status_code": 401,
    }
    with patch("coin_server.client.api_client.CoinAPIClient", return_value=client):
        assert cli.main(["balance", "--phone", PHONE]) == 1
    assert "unauthorized" in capsys.readouterr().err


@pytest.mark.unit
def test_show_config(capsys):
    assert cli.main(["show-config"]) == 0
    assert "SERVER CONFIGURATION" in capsys.readouterr().out
