"""Schema and invariant-trigger tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from coin_server.db.connection import connection_scope
from coin_server.db.schema import init_database
from coin_server.db.store import LedgerStore
from coin_server.ledger import award_party_result
from tests.constants import PHONE

pytestmark = pytest.mark.db


def _object_names(db_path: Path, kind: str) -> set[str]:
    with connection_scope(db_path) as connection:
        rows = connection.execute(
            "SELECT name FROM sqlite_master WHERE type = ?", (kind,)
        ).fetchall()
    return {row[0] for row in rows}


def test_init_creates_tables_indexes_and_triggers(tmp_path: Path):
    db_path = tmp_path / "coins.db"
    init_database(db_path)

    assert {"players", "party_scores", "player_events"} <= _object_names(db_path, "table")
    assert "idx_player_events_phone_seq" in _object_names(db_path, "index")
    assert _object_names(db_path, "trigger") == {
        "trg_player_events_no_update",
        "trg_player_events_no_delete",
        "trg_party_scores_best_monotonic",
    }


def test_init_is_repeatable(tmp_path: Path):
    db_path = tmp_path / "coins.db"
    init_database(db_path)
    init_database(db_path)
    assert "players" in _object_names(db_path, "table")


def test_events_cannot_be_updated(store: LedgerStore):
    award_party_result(store, PHONE, "run", coins=5)

    with pytest.raises(sqlite3.IntegrityError, match="append-only"):
        with connection_scope(store.db_path, write=True) as connection:
            connection.execute("UPDATE player_events SET amount = 500")

    with connection_scope(store.db_path) as connection:
        assert connection.execute("SELECT amount FROM player_events").fetchone()[0] == 5


def test_events_cannot_be_deleted(store: LedgerStore):
    award_party_result(store, PHONE, "run", coins=5)

    with pytest.raises(sqlite3.IntegrityError, match="append-only"):
        with connection_scope(store.db_path, write=True) as connection:
            connection.execute("DELETE FROM player_events")


def test_best_score_cannot_decrease(store: LedgerStore):
    award_party_result(store, PHONE, "run", score=10)

    with pytest.raises(sqlite3.IntegrityError, match="must not decrease"):
        with connection_scope(store.db_path, write=True) as connection:
            connection.execute("UPDATE party_scores SET best_score = 1")


def test_events_require_existing_player(store: LedgerStore):
    with pytest.raises(sqlite3.IntegrityError):
        with connection_scope(store.db_path, write=True) as connection:
            connection.execute(
                """
                INSERT INTO player_events (event_id, phone, source, amount, created_at)
                VALUES ('abc', 'ghost', 'spend', -1, 'now')
                """
            )


def test_write_scope_rolls_back_on_error(store: LedgerStore):
    with pytest.raises(RuntimeError):
        with connection_scope(store.db_path, write=True) as connection:
            connection.execute(
                "INSERT INTO players (phone, created_at, updated_at) VALUES ('555', 'now', 'now')"
            )
            raise RuntimeError("boom")

    with connection_scope(store.db_path) as connection:
        assert connection.execute("SELECT COUNT(*) FROM players").fetchone()[0] == 0


def test_connection_defaults_to_configured_path(temp_db_path: Path):
    init_database(temp_db_path)

    with connection_scope() as connection:
        tables = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()

    assert ("players",) in tables
