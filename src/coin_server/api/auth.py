"""Shared-secret gate for ledger endpoints.

The coin server does not authenticate individual players. A single shared
secret, configured as ``security.shared_secret``, gates every ledger route.
Clients send it either as the ``x-bin-secret`` header or the ``secret`` query
parameter; the header wins when both are present. With no secret configured
the gate is open.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException, Query, Request

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-bin-secret"
SECRET_QUERY_PARAM = "secret"


def secret_matches(expected: str, provided: str | None) -> bool:
    """Return True when ``provided`` equals the configured secret.

    An empty ``expected`` disables the gate.
    """
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def require_secret(
    request: Request,
    header_secret: str | None = Header(None, alias=SECRET_HEADER),
    query_secret: str | None = Query(None, alias=SECRET_QUERY_PARAM),
) -> None:
    """
    FastAPI dependency enforcing the shared secret.

    Raises:
        HTTPException: 401 when a secret is configured and the request does
            not carry it.
    """
    expected = getattr(request.app.state, "shared_secret", "") or ""
    provided = header_secret if header_secret else query_secret
    if not secret_matches(expected, provided):
        logger.warning("Rejected %s %s: bad or missing secret", request.method, request.url.path)
        raise HTTPException(status_code=401, detail="unauthorized")
