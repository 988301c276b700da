"""Party Coin Server.

A small ledger backend that tracks a coin balance per player (keyed by phone
number), awards coins from party-game results, lets players spend coins after a
sufficiency check, and keeps an append-only event log of every balance change.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
``api/server.py`` and ``api/routes/health.py`` import ``__version__`` from here.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version, read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed we fall back to
# "0.0.0-dev" so the application can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("party-coin-server")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
