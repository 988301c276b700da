"""
Shared pytest fixtures for the coin server test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite databases wired into the config system
- Opened ``LedgerStore`` instances
- FastAPI TestClient instances with and without the secret gate

Every fixture is function scoped so each test gets a fresh database.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from coin_server.api.server import create_app
from coin_server.config import use_test_database
from coin_server.db.store import LedgerStore
from tests.constants import TEST_SECRET

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Point the configured database at a per-test temporary file.

    Yields:
        Path to the temporary database file (not yet created)
    """
    db_path = tmp_path / "data" / "test_coins.db"
    with use_test_database(db_path):
        yield db_path


@pytest.fixture(scope="function")
def store(temp_db_path: Path) -> Generator[LedgerStore, None, None]:
    """
    Open a ledger store on the temporary database.

    Backoff is disabled so conflict-retry tests run fast.
    """
    ledger_store = LedgerStore(temp_db_path, max_attempts=5, backoff_ms=0)
    ledger_store.open()
    yield ledger_store
    ledger_store.close()


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def test_client(store: LedgerStore) -> TestClient:
    """
    Create a FastAPI TestClient with the secret gate open.

    The store is opened by the ``store`` fixture, so the app never needs its
    lifespan to run.

    Example:
        def test_balance(test_client):
            response = test_client.get("/coins", params={"phone": "555"})
            assert response.json() == {"coins": 0}
    """
    app = create_app(store, shared_secret="")
    return TestClient(app)


@pytest.fixture(scope="function")
def gated_client(store: LedgerStore) -> TestClient:
    """TestClient for an app that requires ``TEST_SECRET``."""
    app = create_app(store, shared_secret=TEST_SECRET)
    return TestClient(app)
