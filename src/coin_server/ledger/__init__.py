"""Ledger package: the transactional core of the coin server.

Player balances live in SQLite (see :mod:`coin_server.db`). Every mutation in
this package runs as one atomic transaction that updates the player row and
appends exactly one event, so the stored balance always equals the sum of the
player's event amounts.

Public surface
--------------
- :func:`normalize_phone`      canonical player key from a raw phone value.
- :func:`register_player`      create or refresh a profile; no balance change.
- :func:`award_party_result`   credit coins and record a game score.
- :func:`spend_coins`          debit coins after a sufficiency check.
- :func:`get_balance`          read-only balance, 0 for unknown players.
- :func:`get_player`           read-only profile with per-game scores.
- :func:`list_events`          read-only event history, newest first.
- :func:`verify_player_ledger` / :func:`verify_all_ledgers`
                               compare balances with the event log.
- :exc:`InvalidInputError`, :exc:`InsufficientFundsError`
                               business rejections (never retried).

Usage example
-------------
::

    from coin_server.db.store import LedgerStore
    from coin_server.ledger import InsufficientFundsError, award_party_result, spend_coins

    with LedgerStore("data/coins.db") as store:
        award_party_result(store, "+1 (555) 123-4567", "run", score=10, coins=5)
        try:
            spend_coins(store, "+15551234567", 50, reason="hat")
        except InsufficientFundsError as exc:
            print(exc.balance, exc.requested)
"""

from coin_server.ledger.errors import InsufficientFundsError, InvalidInputError, LedgerError
from coin_server.ledger.keys import normalize_phone, require_player_key
from coin_server.ledger.operations import (
    AwardResult,
    SpendResult,
    award_party_result,
    get_balance,
    get_player,
    list_events,
    register_player,
    spend_coins,
)
from coin_server.ledger.verify import LedgerVerifyResult, verify_all_ledgers, verify_player_ledger

__all__ = [
    "AwardResult",
    "InsufficientFundsError",
    "InvalidInputError",
    "LedgerError",
    "LedgerVerifyResult",
    "SpendResult",
    "award_party_result",
    "get_balance",
    "get_player",
    "list_events",
    "normalize_phone",
    "register_player",
    "require_player_key",
    "spend_coins",
    "verify_all_ledgers",
    "verify_player_ledger",
]
