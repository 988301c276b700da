"""Ledger operations: register, award, spend, and read-only queries.

Each mutation validates its input, then hands one unit of work to
:meth:`LedgerStore.run_transaction`. Inside that unit the player row and its
event are written together, so a committed balance change always has exactly
one matching event and a rejected one leaves no trace.

Work functions may run more than once (conflict retry), so they only read
state through the cursor they are given and build their results from it.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

from coin_server.db import events_repo, players_repo
from coin_server.db.constants import (
    DEFAULT_EVENT_LIMIT,
    MAX_EVENT_LIMIT,
    PARTY_SOURCE_PREFIX,
    SPEND_SOURCE,
    SQLITE_INT_MAX,
    SQLITE_INT_MIN,
)
from coin_server.db.store import LedgerStore
from coin_server.db.types import PlayerEvent, PlayerRecord
from coin_server.ledger.errors import InsufficientFundsError, InvalidInputError
from coin_server.ledger.keys import normalize_phone, require_player_key

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AwardResult:
    """Committed outcome of :func:`award_party_result`."""

    phone: str
    game_id: str
    coins: int
    last_score: int
    best_score: int
    event: PlayerEvent


@dataclass(slots=True, frozen=True)
class SpendResult:
    """Committed outcome of :func:`spend_coins`."""

    phone: str
    amount: int
    coins: int
    event: PlayerEvent


# ============================================================================
# INPUT HELPERS
# ============================================================================


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


def _coerce_int(value: object, field_name: str) -> int:
    """Return ``value`` as a 64-bit int, accepting integral floats only."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be an integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    else:
        raise InvalidInputError(f"{field_name} must be an integer")
    if not SQLITE_INT_MIN <= number <= SQLITE_INT_MAX:
        raise InvalidInputError(f"{field_name} out of range")
    return number


def _negative_awards_allowed(allow_negative: bool | None) -> bool:
    if allow_negative is not None:
        return allow_negative
    from coin_server import config as config_module

    return config_module.config.ledger.allow_negative_awards


# ============================================================================
# MUTATIONS
# ============================================================================


def register_player(store: LedgerStore, phone: object, name: object = None) -> str:
    """Create or refresh a player's profile and return the normalized key.

    Balance and score state are left alone and no event is written, so calling
    this repeatedly is harmless.

    Raises:
        InvalidInputError: ``phone`` normalizes to an empty key.
    """
    key = require_player_key(phone)
    display_name = "" if name is None else str(name)

    def work(cursor: sqlite3.Cursor) -> None:
        players_repo.upsert_registration(cursor, key, name=display_name, now=_utc_now())

    store.run_transaction(work, operation="ledger.register_player")
    logger.debug("Registered player %s", key)
    return key


def award_party_result(
    store: LedgerStore,
    phone: object,
    game_id: object,
    score: object = None,
    coins: object = None,
    *,
    allow_negative: bool | None = None,
) -> AwardResult:
    """Credit coins from a party game result and record the score.

    Missing players are created on the fly. ``best_score`` becomes the larger
    of the stored best (0 when the game was never played) and ``score``.

    Args:
        store: Open ledger store.
        phone: Raw phone value; normalized before use.
        game_id: Game identifier, required.
        score: Submitted score, default 0.
        coins: Coins to credit, default 0.
        allow_negative: Accept a negative ``coins`` value. ``None`` defers to
            ``config.ledger.allow_negative_awards``.

    Raises:
        InvalidInputError: Missing key or game id, non-integer values, or a
            negative award while negative awards are disabled.
    """
    key = normalize_phone(phone)
    game = "" if game_id is None else str(game_id)
    if not key or not game:
        raise InvalidInputError("phone and gameId required")

    score_value = 0 if score is None else _coerce_int(score, "score")
    amount = 0 if coins is None else _coerce_int(coins, "coins")
    if amount < 0 and not _negative_awards_allowed(allow_negative):
        raise InvalidInputError("coins must not be negative")

    source = f"{PARTY_SOURCE_PREFIX}{game}"

    def work(cursor: sqlite3.Cursor) -> AwardResult:
        now = _utc_now()
        player = players_repo.fetch_player(cursor, key)
        if player is None:
            player = players_repo.insert_player(cursor, key, now=now, last_source=source)

        if not SQLITE_INT_MIN <= player.coins + amount <= SQLITE_INT_MAX:
            raise InvalidInputError("coins would overflow the balance")

        previous = players_repo.fetch_party_score(cursor, key, game)
        current_best = previous.best_score if previous is not None else 0
        new_best = max(current_best, score_value)

        balance = players_repo.apply_player_delta(
            cursor,
            key,
            expected_version=player.version,
            delta=amount,
            last_source=source,
            now=now,
        )
        players_repo.upsert_party_score(
            cursor, key, game, last_score=score_value, best_score=new_best, now=now
        )
        event = events_repo.append_player_event(
            cursor, phone=key, source=source, amount=amount, score=score_value, now=now
        )
        return AwardResult(
            phone=key,
            game_id=game,
            coins=balance,
            last_score=score_value,
            best_score=new_best,
            event=event,
        )

    result = store.run_transaction(work, operation="ledger.award_party_result")
    logger.debug(
        "Awarded %d coins to %s for %s (score=%d, balance=%d)",
        amount,
        key,
        game,
        score_value,
        result.coins,
    )
    return result


def spend_coins(
    store: LedgerStore,
    phone: object,
    amount: object,
    reason: object = None,
) -> SpendResult:
    """Debit ``amount`` coins after checking the balance covers it.

    The sufficiency check and the debit run in the same transaction, so two
    concurrent spends can never jointly overdraw a balance.

    Raises:
        InvalidInputError: Missing key or amount, or a non-positive amount.
        InsufficientFundsError: The balance is lower than ``amount``.
    """
    key = normalize_phone(phone)
    if not key or amount is None:
        raise InvalidInputError("phone and amount required")

    value = _coerce_int(amount, "amount")
    if value <= 0:
        raise InvalidInputError("amount must be positive")

    reason_text = "" if reason is None else str(reason).strip()
    source = reason_text or SPEND_SOURCE

    def work(cursor: sqlite3.Cursor) -> SpendResult:
        player = players_repo.fetch_player(cursor, key)
        balance = player.coins if player is not None else 0
        if player is None or balance < value:
            raise InsufficientFundsError(phone=key, balance=balance, requested=value)

        now = _utc_now()
        new_balance = players_repo.apply_player_delta(
            cursor,
            key,
            expected_version=player.version,
            delta=-value,
            last_source=source,
            now=now,
        )
        event = events_repo.append_player_event(
            cursor, phone=key, source=source, amount=-value, now=now
        )
        return SpendResult(phone=key, amount=value, coins=new_balance, event=event)

    result = store.run_transaction(work, operation="ledger.spend_coins")
    logger.debug("Spent %d coins for %s (balance=%d)", value, key, result.coins)
    return result


# ============================================================================
# READS
# ============================================================================


def get_balance(store: LedgerStore, phone: object) -> int:
    """Return the current balance for ``phone``, 0 for unknown players.

    Raises:
        InvalidInputError: ``phone`` normalizes to an empty key.
    """
    key = require_player_key(phone)
    with store.read(operation="ledger.get_balance") as cursor:
        balance = players_repo.fetch_balance(cursor, key)
    return balance if balance is not None else 0


def get_player(store: LedgerStore, phone: object) -> PlayerRecord | None:
    """Return the player profile with per-game scores, or ``None``."""
    key = require_player_key(phone)
    with store.read(operation="ledger.get_player") as cursor:
        player = players_repo.fetch_player(cursor, key)
        if player is not None:
            player.party_scores = players_repo.fetch_party_scores(cursor, key)
    return player


def list_events(
    store: LedgerStore,
    phone: object,
    limit: int = DEFAULT_EVENT_LIMIT,
) -> list[PlayerEvent]:
    """Return a player's events, newest first. ``limit`` is clamped to 1..500."""
    key = require_player_key(phone)
    bounded = max(1, min(int(limit), MAX_EVENT_LIMIT))
    with store.read(operation="ledger.list_events") as cursor:
        return events_repo.list_player_events(cursor, key, limit=bounded)
