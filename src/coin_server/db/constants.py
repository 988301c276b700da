"""Shared database constants for the DB package.

This module centralizes constants that are consumed by the repositories, the
ledger operations, and tests. Keeping them in one location prevents accidental
divergence between what is written and what is asserted.
"""

from __future__ import annotations

# Source tags recorded on player rows and events.
REGISTRATION_SOURCE = "registration"
SPEND_SOURCE = "spend"
PARTY_SOURCE_PREFIX = "party:"

# Event history paging.
DEFAULT_EVENT_LIMIT = 50
MAX_EVENT_LIMIT = 500

# SQLite INTEGER storage is signed 64-bit.
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1
