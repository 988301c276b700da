"""SQLite connection primitives for the coin ledger DB layer.

This module owns connection creation and low-level SQLite runtime pragmas so
repository code can stay focused on queries and the store can stay focused on
transaction intent.

Connections are opened with ``isolation_level=None`` (autocommit). Every
transaction boundary is issued explicitly (``BEGIN`` / ``COMMIT`` /
``ROLLBACK``) by the caller so the read-modify-write sequence of a ledger
mutation is never split by the driver's implicit transaction handling.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

DEFAULT_BUSY_TIMEOUT_MS = 5000


def get_db_path() -> Path:
    """Resolve the absolute SQLite database path from runtime configuration."""
    from coin_server.config import config

    return config.database.absolute_path


def configure_connection(
    connection: sqlite3.Connection,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> sqlite3.Connection:
    """Apply connection-level SQLite pragmas required by the application.

    Notes:
        - ``foreign_keys=ON`` is required because SQLite does not enforce
          foreign-key constraints by default.
        - ``busy_timeout`` makes writers queue behind the current write lock
          instead of failing straight away.
    """
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    return connection


def get_connection(
    db_path: Path | str | None = None,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> sqlite3.Connection:
    """Create and configure a new autocommit SQLite connection."""
    path = Path(db_path) if db_path is not None else get_db_path()
    connection = sqlite3.connect(
        str(path),
        timeout=busy_timeout_ms / 1000,
        isolation_level=None,
    )
    return configure_connection(connection, busy_timeout_ms=busy_timeout_ms)


@contextmanager
def connection_scope(
    db_path: Path | str | None = None,
    *,
    write: bool = False,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection with guaranteed cleanup semantics.

    Args:
        db_path: Database file; defaults to the configured path.
        write: When True, wrap the block in ``BEGIN IMMEDIATE`` / ``COMMIT``
            and roll back on exceptions.
        busy_timeout_ms: SQLite busy handler timeout.

    Yields:
        Configured SQLite connection ready for cursor operations.

    Behavior:
        - Always closes the connection in ``finally``.
        - For write scopes, commits at the end of a successful block.
        - For write scopes, attempts rollback before re-raising failures.
    """
    connection = get_connection(db_path, busy_timeout_ms=busy_timeout_ms)
    try:
        if write:
            connection.execute("BEGIN IMMEDIATE")
        yield connection
        if write:
            connection.execute("COMMIT")
    except Exception:
        if write:
            rollback_quietly(connection)
        raise
    finally:
        connection.close()


def rollback_quietly(connection: sqlite3.Connection) -> None:
    """Roll back an open transaction, ignoring rollback failures."""
    if not connection.in_transaction:
        return
    try:
        connection.execute("ROLLBACK")
    except sqlite3.Error:
        # Preserve the original exception while best-effort rolling back.
        pass
