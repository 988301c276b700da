"""Ledger verification: stored balances against the event log.

``players.coins`` is a materialized view; the event log is the record. A
mismatch means a balance was written outside :mod:`coin_server.ledger.operations`
or a transaction was only partly applied, both of which should be impossible.
The check is diagnostic: callers log the result, they do not refuse to start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from coin_server.db import players_repo
from coin_server.db.store import LedgerStore
from coin_server.db.types import LedgerTotals
from coin_server.ledger.keys import require_player_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerVerifyResult:
    """Result of comparing one player's balance with their event log.

    Attributes:
        status: One of:
            - ``"ok"``       balance equals the sum of event amounts.
            - ``"empty"``    no player row exists for the key.
            - ``"mismatch"`` balance and event sum disagree.
        phone: Normalized player key that was checked.
        balance: Stored balance, 0 when ``status`` is ``"empty"``.
        event_total: Sum of all event amounts for the key.
        event_count: Number of events for the key.
        error_detail: Human-readable description of a mismatch, else ``None``.
    """

    status: Literal["ok", "empty", "mismatch"]
    phone: str
    balance: int
    event_total: int
    event_count: int
    error_detail: str | None = None


def _result_from_totals(totals: LedgerTotals) -> LedgerVerifyResult:
    if totals.coins == totals.event_total:
        return LedgerVerifyResult(
            status="ok",
            phone=totals.phone,
            balance=totals.coins,
            event_total=totals.event_total,
            event_count=totals.event_count,
        )
    return LedgerVerifyResult(
        status="mismatch",
        phone=totals.phone,
        balance=totals.coins,
        event_total=totals.event_total,
        event_count=totals.event_count,
        error_detail=(
            f"balance {totals.coins} != event total {totals.event_total} "
            f"over {totals.event_count} events"
        ),
    )


def verify_player_ledger(store: LedgerStore, phone: object) -> LedgerVerifyResult:
    """Check that one player's balance equals the sum of their events.

    Example::

        result = verify_player_ledger(store, "+15551234567")
        if result.status == "mismatch":
            logger.critical("Ledger mismatch for %s: %s", result.phone, result.error_detail)
    """
    key = require_player_key(phone)
    with store.read(operation="ledger.verify_player") as cursor:
        rows = players_repo.fetch_ledger_totals(cursor, key)
    if not rows:
        return LedgerVerifyResult(
            status="empty", phone=key, balance=0, event_total=0, event_count=0
        )
    return _result_from_totals(rows[0])


def verify_all_ledgers(store: LedgerStore) -> list[LedgerVerifyResult]:
    """Check every player and return only the mismatching results."""
    with store.read(operation="ledger.verify_all") as cursor:
        rows = players_repo.fetch_ledger_totals(cursor)

    mismatches = []
    for totals in rows:
        result = _result_from_totals(totals)
        if result.status == "mismatch":
            mismatches.append(result)
    logger.debug("Verified %d ledgers, %d mismatched", len(rows), len(mismatches))
    return mismatches
