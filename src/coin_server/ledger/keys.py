"""Player key normalization."""

from __future__ import annotations

import re

from coin_server.ledger.errors import InvalidInputError

_NON_KEY_CHARS = re.compile(r"[^0-9+]")


def normalize_phone(raw: object) -> str:
    """Return the canonical player key for a raw phone value.

    Every character other than ASCII digits and ``+`` is dropped. ``+`` is
    kept wherever it appears, so ``"1+2"`` stays ``"1+2"``. ``None`` and empty
    input give ``""``.

    Example::

        >>> normalize_phone("+1 (555) 123-4567")
        '+15551234567'
    """
    if raw is None:
        return ""
    return _NON_KEY_CHARS.sub("", str(raw))


def require_player_key(raw: object, message: str = "phone required") -> str:
    """Normalize ``raw`` and reject an empty result.

    Raises:
        InvalidInputError: The normalized key is empty.
    """
    key = normalize_phone(raw)
    if not key:
        raise InvalidInputError(message)
    return key
