"""Business-outcome exceptions raised by ledger operations.

These are rejections, not faults: the request was understood and refused.
They are raised before or inside a transaction and always leave the ledger
untouched. Infrastructure failures live in :mod:`coin_server.db.errors`.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger business rejections."""


class InvalidInputError(LedgerError, ValueError):
    """A required field is missing or malformed."""


class InsufficientFundsError(LedgerError):
    """A spend asked for more coins than the player holds.

    Attributes:
        phone: Normalized player key.
        balance: Balance observed inside the rejected transaction.
        requested: Amount the caller tried to spend.
    """

    def __init__(self, *, phone: str, balance: int, requested: int) -> None:
        super().__init__("insufficient funds")
        self.phone = phone
        self.balance = balance
        self.requested = requested
