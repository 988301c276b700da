"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check). Neither is behind the secret gate.
"""

from fastapi import APIRouter

from coin_server import __version__

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "Party Coin Server API", "version": __version__}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"ok": True}
