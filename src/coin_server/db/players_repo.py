"""Player ledger repository operations for the SQLite backend.

Every function takes a cursor owned by the caller. Write helpers are meant to
run inside :meth:`coin_server.db.store.LedgerStore.run_transaction`; they never
begin, commit, or roll back on their own.

Balance writes are relative (``coins = coins + ?``) and guarded by the row's
``version``. A guard miss raises :class:`~coin_server.db.errors.WriteConflict`
so the store can retry the whole transaction against fresh state.
"""

from __future__ import annotations

import sqlite3

from coin_server.db.constants import REGISTRATION_SOURCE
from coin_server.db.errors import WriteConflict
from coin_server.db.types import LedgerTotals, PartyScore, PlayerRecord

_PLAYER_COLUMNS = "phone, name, coins, last_source, version, created_at, updated_at"


def _row_to_player(row: tuple) -> PlayerRecord:
    phone, name, coins, last_source, version, created_at, updated_at = row
    return PlayerRecord(
        phone=phone,
        name=name or "",
        coins=int(coins),
        last_source=last_source,
        version=int(version),
        created_at=created_at,
        updated_at=updated_at,
    )


def fetch_player(cursor: sqlite3.Cursor, phone: str) -> PlayerRecord | None:
    """Return the player row for ``phone`` without score state, or ``None``."""
    cursor.execute(
        f"SELECT {_PLAYER_COLUMNS} FROM players WHERE phone = ?",  # nosec B608
        (phone,),
    )
    row = cursor.fetchone()
    return _row_to_player(row) if row else None


def fetch_balance(cursor: sqlite3.Cursor, phone: str) -> int | None:
    """Return the stored balance for ``phone`` or ``None`` if the player is unknown."""
    cursor.execute("SELECT coins FROM players WHERE phone = ?", (phone,))
    row = cursor.fetchone()
    return int(row[0]) if row else None


def fetch_party_score(cursor: sqlite3.Cursor, phone: str, game_id: str) -> PartyScore | None:
    """Return score state for one game, or ``None`` when never played."""
    cursor.execute(
        """
        SELECT game_id, last_score, best_score, updated_at
        FROM party_scores
        WHERE phone = ? AND game_id = ?
        """,
        (phone, game_id),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return PartyScore(
        game_id=row[0],
        last_score=int(row[1]),
        best_score=int(row[2]),
        updated_at=row[3],
    )


def fetch_party_scores(cursor: sqlite3.Cursor, phone: str) -> dict[str, PartyScore]:
    """Return all score state for a player keyed by game id."""
    cursor.execute(
        """
        SELECT game_id, last_score, best_score, updated_at
        FROM party_scores
        WHERE phone = ?
        ORDER BY game_id
        """,
        (phone,),
    )
    return {
        game_id: PartyScore(
            game_id=game_id,
            last_score=int(last_score),
            best_score=int(best_score),
            updated_at=updated_at,
        )
        for game_id, last_score, best_score, updated_at in cursor.fetchall()
    }


def insert_player(
    cursor: sqlite3.Cursor,
    phone: str,
    *,
    now: str,
    last_source: str,
    name: str = "",
) -> PlayerRecord:
    """Insert a player row with a zero balance.

    Raises:
        WriteConflict: Another transaction created the same player first.
    """
    try:
        cursor.execute(
            """
            INSERT INTO players (phone, name, coins, last_source, version, created_at, updated_at)
            VALUES (?, ?, 0, ?, 0, ?, ?)
            """,
            (phone, name, last_source, now, now),
        )
    except sqlite3.IntegrityError as exc:
        raise WriteConflict(f"player {phone!r} was created concurrently") from exc
    return PlayerRecord(
        phone=phone,
        name=name,
        coins=0,
        last_source=last_source,
        version=0,
        created_at=now,
        updated_at=now,
    )


def upsert_registration(cursor: sqlite3.Cursor, phone: str, *, name: str, now: str) -> None:
    """Create or update a player's profile fields without touching balance or scores.

    The upsert is a single statement, so it needs no version guard: the name is
    always overwritten and the balance column is never part of the write.
    """
    cursor.execute(
        """
        INSERT INTO players (phone, name, coins, last_source, version, created_at, updated_at)
        VALUES (?, ?, 0, ?, 0, ?, ?)
        ON CONFLICT(phone) DO UPDATE SET
            name = excluded.name,
            last_source = excluded.last_source,
            updated_at = excluded.updated_at,
            version = players.version + 1
        """,
        (phone, name, REGISTRATION_SOURCE, now, now),
    )


def apply_player_delta(
    cursor: sqlite3.Cursor,
    phone: str,
    *,
    expected_version: int,
    delta: int,
    last_source: str,
    now: str,
) -> int:
    """Increment a player's balance by ``delta`` and return the new balance.

    The increment is relative to the stored value and only applies when the row
    still carries ``expected_version``.

    Raises:
        WriteConflict: The row changed since it was read in this transaction.
    """
    cursor.execute(
        """
        UPDATE players
        SET coins = coins + ?,
            last_source = ?,
            updated_at = ?,
            version = version + 1
        WHERE phone = ? AND version = ?
        """,
        (delta, last_source, now, phone, expected_version),
    )
    if cursor.rowcount != 1:
        raise WriteConflict(f"player {phone!r} changed since version {expected_version}")

    balance = fetch_balance(cursor, phone)
    if balance is None:
        raise WriteConflict(f"player {phone!r} disappeared during update")
    return balance


def upsert_party_score(
    cursor: sqlite3.Cursor,
    phone: str,
    game_id: str,
    *,
    last_score: int,
    best_score: int,
    now: str,
) -> None:
    """Write the last and best score for one game."""
    cursor.execute(
        """
        INSERT INTO party_scores (phone, game_id, last_score, best_score, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(phone, game_id) DO UPDATE SET
            last_score = excluded.last_score,
            best_score = excluded.best_score,
            updated_at = excluded.updated_at
        """,
        (phone, game_id, last_score, best_score, now),
    )


def fetch_ledger_totals(cursor: sqlite3.Cursor, phone: str | None = None) -> list[LedgerTotals]:
    """Return stored balance next to the event-log sum for one or all players."""
    query = """
        SELECT p.phone,
               p.coins,
               COALESCE(SUM(e.amount), 0),
               COUNT(e.seq)
        FROM players p
        LEFT JOIN player_events e ON e.phone = p.phone
        {where}
        GROUP BY p.phone, p.coins
        ORDER BY p.phone
    """
    if phone is None:
        cursor.execute(query.format(where=""))  # nosec B608
    else:
        cursor.execute(query.format(where="WHERE p.phone = ?"), (phone,))  # nosec B608
    return [
        LedgerTotals(
            phone=row[0],
            coins=int(row[1]),
            event_total=int(row[2]),
            event_count=int(row[3]),
        )
        for row in cursor.fetchall()
    ]
