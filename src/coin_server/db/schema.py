"""Schema creation and invariant trigger wiring for the SQLite backend.

The schema layer is isolated from ledger/query code so schema changes are
reviewable without wading through unrelated repository logic.

Tables:
    players        one row per normalized phone; materialized balance cache
    party_scores   per-player, per-game last/best score
    player_events  append-only log of every balance-affecting mutation

Invariants enforced in the database itself:
    - ``player_events`` rows can never be updated or deleted.
    - ``party_scores.best_score`` never decreases.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from coin_server.db.connection import DEFAULT_BUSY_TIMEOUT_MS, connection_scope, get_connection

logger = logging.getLogger(__name__)

TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS players (
        phone TEXT PRIMARY KEY CHECK (phone <> ''),
        name TEXT NOT NULL DEFAULT '',
        coins INTEGER NOT NULL DEFAULT 0,
        last_source TEXT,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS party_scores (
        phone TEXT NOT NULL REFERENCES players(phone),
        game_id TEXT NOT NULL CHECK (game_id <> ''),
        last_score INTEGER NOT NULL DEFAULT 0,
        best_score INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (phone, game_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id TEXT NOT NULL UNIQUE,
        phone TEXT NOT NULL REFERENCES players(phone),
        source TEXT NOT NULL,
        amount INTEGER NOT NULL,
        score INTEGER,
        created_at TEXT NOT NULL
    )
    """,
)

# The per-player event scan backs history listing and ledger verification.
INDEX_STATEMENTS = (
    "CREATE INDEX IF NOT EXISTS idx_player_events_phone_seq ON player_events(phone, seq)",
)

TRIGGER_STATEMENTS = (
    """
    CREATE TRIGGER IF NOT EXISTS trg_player_events_no_update
    BEFORE UPDATE ON player_events
    BEGIN
        SELECT RAISE(ABORT, 'player_events is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_player_events_no_delete
    BEFORE DELETE ON player_events
    BEGIN
        SELECT RAISE(ABORT, 'player_events is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_party_scores_best_monotonic
    BEFORE UPDATE OF best_score ON party_scores
    WHEN NEW.best_score < OLD.best_score
    BEGIN
        SELECT RAISE(ABORT, 'party_scores.best_score must not decrease');
    END
    """,
)


def create_tables(cursor: sqlite3.Cursor) -> None:
    """Create ledger tables and indexes when absent."""
    for statement in TABLE_STATEMENTS:
        cursor.execute(statement)
    for statement in INDEX_STATEMENTS:
        cursor.execute(statement)


def create_invariant_triggers(cursor: sqlite3.Cursor) -> None:
    """Create triggers that keep the event log append-only and best scores monotonic."""
    for statement in TRIGGER_STATEMENTS:
        cursor.execute(statement)


def enable_wal(db_path: Path | str) -> str:
    """Switch the database to WAL journaling and return the active mode.

    WAL lets balance queries read the last committed state while a writer holds
    the lock. The mode is persistent, so this only needs to run once per file.
    """
    connection = get_connection(db_path)
    try:
        row = connection.execute("PRAGMA journal_mode = WAL").fetchone()
    finally:
        connection.close()
    return str(row[0]) if row else ""


def init_database(
    db_path: Path | str,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> None:
    """Create the database file, tables, indexes, and triggers.

    Safe to call repeatedly; every statement is ``IF NOT EXISTS``.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    journal_mode = enable_wal(path)
    with connection_scope(path, write=True, busy_timeout_ms=busy_timeout_ms) as connection:
        cursor = connection.cursor()
        create_tables(cursor)
        create_invariant_triggers(cursor)

    logger.debug("Schema ready at %s (journal_mode=%s)", path, journal_mode)
