"""Shared helpers for API route modules."""

from fastapi import Request

from coin_server.db.store import LedgerStore


def get_store(request: Request) -> LedgerStore:
    """
    FastAPI dependency returning the ledger store bound to the app.

    The store is attached to ``app.state`` by :func:`coin_server.api.server.create_app`
    and opened by the application lifespan.
    """
    return request.app.state.store
