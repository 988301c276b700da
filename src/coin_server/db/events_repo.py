"""Event log repository operations for player balance mutations.

The ``player_events`` table is the authoritative record of every balance
change; ``players.coins`` is a materialized view derived from it. Rows are only
ever inserted, always inside the same transaction as the balance write they
describe. Schema triggers reject UPDATE and DELETE.
"""

from __future__ import annotations

import sqlite3
import uuid

from coin_server.db.types import PlayerEvent

_EVENT_COLUMNS = "seq, event_id, phone, source, amount, score, created_at"


def _row_to_event(row: tuple) -> PlayerEvent:
    seq, event_id, phone, source, amount, score, created_at = row
    return PlayerEvent(
        seq=int(seq),
        event_id=event_id,
        phone=phone,
        source=source,
        amount=int(amount),
        score=int(score) if score is not None else None,
        created_at=created_at,
    )


def append_player_event(
    cursor: sqlite3.Cursor,
    *,
    phone: str,
    source: str,
    amount: int,
    now: str,
    score: int | None = None,
) -> PlayerEvent:
    """Append one event row and return it.

    Args:
        cursor: Cursor inside the caller's open transaction.
        phone: Normalized player key (must already exist in ``players``).
        source: Source tag, e.g. ``"party:run"`` or ``"spend"``.
        amount: Signed coin delta that the same transaction applies.
        now: Commit timestamp shared with the player row write.
        score: Submitted score for party results.

    Returns:
        The written :class:`PlayerEvent`, including its insertion ``seq``.
    """
    if not source or not source.strip():
        raise ValueError("append_player_event: source must be a non-empty string.")

    event_id = uuid.uuid4().hex  # 32-char lowercase hex, no hyphens
    cursor.execute(
        """
        INSERT INTO player_events (event_id, phone, source, amount, score, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (event_id, phone, source, amount, score, now),
    )
    seq = cursor.lastrowid
    if seq is None:
        raise ValueError("Failed to append player event.")

    return PlayerEvent(
        seq=int(seq),
        event_id=event_id,
        phone=phone,
        source=source,
        amount=amount,
        score=score,
        created_at=now,
    )


def list_player_events(cursor: sqlite3.Cursor, phone: str, *, limit: int) -> list[PlayerEvent]:
    """Return a player's most recent events, newest first."""
    cursor.execute(
        f"""
        SELECT {_EVENT_COLUMNS}
        FROM player_events
        WHERE phone = ?
        ORDER BY seq DESC
        LIMIT ?
        """,  # nosec B608
        (phone, limit),
    )
    return [_row_to_event(row) for row in cursor.fetchall()]

