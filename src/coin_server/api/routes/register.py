"""
Route registration entry point for the FastAPI application.

Keeps the public `register_routes(app)` API stable while splitting the
implementation into focused router modules.
"""

from fastapi import FastAPI

from coin_server.api.routes import coins, health, players


def register_routes(app: FastAPI) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(players.router())
    app.include_router(coins.router())
