"""Ledger store: the single owner of SQLite transactions for the coin ledger.

``LedgerStore`` wraps one database file and hands out two kinds of scopes:

- :meth:`LedgerStore.read` yields a cursor outside any explicit transaction.
  In WAL mode each statement sees the last committed state.
- :meth:`LedgerStore.run_transaction` runs a unit of work as one atomic
  transaction and retries it when a concurrent writer got there first.

Concurrency model:
    Transactions start with ``BEGIN IMMEDIATE``, so writers queue on the
    SQLite busy handler (``busy_timeout_ms``) before they read anything. A body
    reads the player row, computes its write, and applies it with a relative
    increment guarded by the row version. If the guard misses, the body raises
    :class:`~coin_server.db.errors.WriteConflict`. Lock contention that outlasts
    the busy timeout (``SQLITE_BUSY`` / ``SQLITE_LOCKED``) is treated the same
    way. The store rolls back, sleeps a short jittered backoff, and re-runs
    the whole body. Nothing partial is ever committed.

    When ``max_attempts`` is spent the store raises
    :class:`~coin_server.db.errors.TransactionConflictError`.
"""

from __future__ import annotations

import logging
import random
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from coin_server.db.connection import DEFAULT_BUSY_TIMEOUT_MS, get_connection, rollback_quietly
from coin_server.db.errors import (
    DatabaseError,
    DatabaseOperationContext,
    DatabaseReadError,
    DatabaseWriteError,
    TransactionConflictError,
    WriteConflict,
)
from coin_server.db.schema import init_database

if TYPE_CHECKING:
    from coin_server.config import ServerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_MS = 10

# Primary result codes for SQLITE_BUSY and SQLITE_LOCKED.
_BUSY_CODES = frozenset({5, 6})


def is_lock_contention(exc: sqlite3.Error) -> bool:
    """Return True when ``exc`` reports database lock contention."""
    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None and (code & 0xFF) in _BUSY_CODES:
        return True
    message = str(exc).lower()
    return "locked" in message or "busy" in message


class LedgerStore:
    """Durable ledger storage bound to one SQLite file.

    Args:
        db_path: Database file location. Parent directories are created on open.
        max_attempts: Attempts per transaction before giving up on conflicts.
        backoff_ms: Base backoff between attempts in milliseconds.
        busy_timeout_ms: SQLite busy handler timeout for each connection.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff_ms < 0:
            raise ValueError("backoff_ms must not be negative")
        self.db_path = Path(db_path)
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self.busy_timeout_ms = busy_timeout_ms
        self._open = False

    @classmethod
    def from_config(cls, cfg: ServerConfig | None = None) -> LedgerStore:
        """Build a store from server configuration (the loaded singleton by default)."""
        if cfg is None:
            from coin_server import config as config_module

            cfg = config_module.config
        return cls(
            cfg.database.absolute_path,
            max_attempts=cfg.ledger.max_attempts,
            backoff_ms=cfg.ledger.backoff_ms,
            busy_timeout_ms=cfg.ledger.busy_timeout_ms,
        )

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> LedgerStore:
        """Create the schema if needed and mark the store usable.

        Raises:
            DatabaseWriteError: The file could not be created or migrated.
        """
        if self._open:
            return self
        try:
            init_database(self.db_path, busy_timeout_ms=self.busy_timeout_ms)
        except (sqlite3.Error, OSError) as exc:
            raise DatabaseWriteError(
                context=DatabaseOperationContext(
                    operation="store.open",
                    details=f"cannot initialize {self.db_path}: {exc}",
                ),
                cause=exc,
            ) from exc
        self._open = True
        logger.info("Ledger store opened at %s", self.db_path)
        return self

    def close(self) -> None:
        """Mark the store closed. Connections are per-scope, so nothing else is held."""
        if self._open:
            self._open = False
            logger.info("Ledger store closed (%s)", self.db_path)

    def __enter__(self) -> LedgerStore:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_open(self, operation: str) -> None:
        if not self._open:
            raise DatabaseError(f"{operation}: ledger store is not open")

    # ========================================================================
    # SCOPES
    # ========================================================================

    @contextmanager
    def read(self, *, operation: str = "store.read") -> Iterator[sqlite3.Cursor]:
        """Yield a cursor for read-only queries.

        Raises:
            DatabaseReadError: Any SQLite failure inside the block.
        """
        self._ensure_open(operation)
        try:
            connection = get_connection(self.db_path, busy_timeout_ms=self.busy_timeout_ms)
        except sqlite3.Error as exc:
            raise DatabaseReadError(
                context=DatabaseOperationContext(operation=operation, details=str(exc)),
                cause=exc,
            ) from exc
        try:
            yield connection.cursor()
        except sqlite3.Error as exc:
            raise DatabaseReadError(
                context=DatabaseOperationContext(operation=operation, details=str(exc)),
                cause=exc,
            ) from exc
        finally:
            connection.close()

    def run_transaction(
        self,
        work: Callable[[sqlite3.Cursor], T],
        *,
        operation: str = "store.transaction",
    ) -> T:
        """Run ``work`` atomically, retrying on write conflicts.

        ``work`` receives a cursor inside an open transaction. It must be safe
        to call more than once: every attempt starts from fresh committed state
        and anything a failed attempt wrote is rolled back.

        Exceptions raised by ``work`` that are not conflicts or SQLite errors
        (business rejections such as insufficient funds) roll back the attempt
        and propagate unchanged.

        Returns:
            Whatever ``work`` returned on the committed attempt.

        Raises:
            TransactionConflictError: Every attempt conflicted.
            DatabaseWriteError: A non-transient SQLite failure.
        """
        self._ensure_open(operation)
        last_conflict: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                connection = get_connection(self.db_path, busy_timeout_ms=self.busy_timeout_ms)
            except sqlite3.Error as exc:
                raise DatabaseWriteError(
                    context=DatabaseOperationContext(operation=operation, details=str(exc)),
                    cause=exc,
                ) from exc

            try:
                connection.execute("BEGIN IMMEDIATE")
                result = work(connection.cursor())
                connection.execute("COMMIT")
            except WriteConflict as exc:
                rollback_quietly(connection)
                last_conflict = exc
            except sqlite3.OperationalError as exc:
                rollback_quietly(connection)
                if not is_lock_contention(exc):
                    raise DatabaseWriteError(
                        context=DatabaseOperationContext(operation=operation, details=str(exc)),
                        cause=exc,
                    ) from exc
                last_conflict = exc
            except sqlite3.Error as exc:
                rollback_quietly(connection)
                raise DatabaseWriteError(
                    context=DatabaseOperationContext(operation=operation, details=str(exc)),
                    cause=exc,
                ) from exc
            except Exception:
                rollback_quietly(connection)
                raise
            else:
                if attempt > 1:
                    logger.info("%s committed after %d attempts", operation, attempt)
                return result
            finally:
                connection.close()

            if attempt < self.max_attempts:
                logger.warning(
                    "%s conflicted (attempt %d/%d): %s",
                    operation,
                    attempt,
                    self.max_attempts,
                    last_conflict,
                )
                self._backoff(attempt)

        logger.error("%s gave up after %d conflicting attempts", operation, self.max_attempts)
        raise TransactionConflictError(
            context=DatabaseOperationContext(
                operation=operation,
                details=f"write conflict persisted after {self.max_attempts} attempts",
            ),
            attempts=self.max_attempts,
            cause=last_conflict,
        )

    def _backoff(self, attempt: int) -> None:
        if self.backoff_ms <= 0:
            return
        delay = self.backoff_ms / 1000 * attempt * random.uniform(1.0, 2.0)  # nosec B311
        time.sleep(delay)
