"""Typed database exceptions for the DB package.

This module defines a small, explicit exception hierarchy used by the store and
repository modules to signal infrastructure failures (SQLite connection/query
errors, exhausted write-conflict retries) without collapsing them into the
business outcomes raised by :mod:`coin_server.ledger`.

Design intent:
    - Business rejections (invalid input, insufficient funds) live in
      ``coin_server.ledger.errors`` and are never wrapped here.
    - Infrastructure failures raise typed exceptions so the API boundary can
      map them to deterministic HTTP 5xx responses and logs.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DatabaseOperationContext:
    """Structured operation metadata carried by repository exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"ledger.spend_coins"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class DatabaseError(RuntimeError):
    """Base exception for DB-layer failures."""


class DatabaseOperationError(DatabaseError):
    """Base exception for repository operation failures.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: DatabaseOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class DatabaseReadError(DatabaseOperationError):
    """Repository read/query failure."""


class DatabaseWriteError(DatabaseOperationError):
    """Repository mutation/transaction failure."""


class TransactionConflictError(DatabaseOperationError):
    """A transaction kept conflicting with concurrent writers.

    Raised once the retry budget is spent. The failure is transient: the same
    request may succeed when resubmitted.

    Args:
        context: Structured operation metadata.
        attempts: Number of attempts made before giving up.
        cause: The conflict seen on the final attempt.
    """

    def __init__(
        self,
        *,
        context: DatabaseOperationContext,
        attempts: int,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(context=context, cause=cause)
        self.attempts = attempts


class WriteConflict(Exception):
    """Internal signal that a compare-and-swap write lost a race.

    Raised inside a transaction body; :meth:`LedgerStore.run_transaction`
    catches it, rolls back, and retries. It never escapes the store.
    """
