"""
API client for the Party Coin Server.

This module provides the HTTP client game front-ends and operator tooling use
to talk to the FastAPI backend. It handles request execution, the shared
secret header, error handling, and response parsing.

Every call returns the same envelope::

    {"success": bool, "data": dict | None, "error": str | None, "status_code": int}

Configuration:
    COIN_SERVER_URL: Backend API server URL (default http://localhost:5000)
    COIN_SHARED_SECRET: Sent as the ``x-bin-secret`` header when set
"""

import os
from typing import Any

import requests

DEFAULT_SERVER_URL = "http://localhost:5000"
SECRET_HEADER = "x-bin-secret"


class CoinAPIClient:
    """
    HTTP client for the coin ledger endpoints.

    Attributes:
        server_url: Backend API server URL
        secret: Shared secret sent with every request, or None
    """

    def __init__(self, server_url: str | None = None, secret: str | None = None):
        """
        Initialize the client.

        Args:
            server_url: Optional server URL override. Falls back to the
                       COIN_SERVER_URL environment variable, then
                       http://localhost:5000
            secret: Optional shared secret. Falls back to COIN_SHARED_SECRET.
        """
        self.server_url = (server_url or os.getenv("COIN_SERVER_URL", DEFAULT_SERVER_URL)).rstrip(
            "/"
        )
        self.secret = secret if secret is not None else os.getenv("COIN_SHARED_SECRET")

    def _headers(self) -> dict[str, str]:
        return {SECRET_HEADER: self.secret} if self.secret else {}

    def _make_request(
        self,
        method: str,
        endpoint: str,
        json: dict | None = None,
        params: dict | None = None,
        timeout: int = 30,
    ) -> dict[str, Any]:
        """
        Make an HTTP request to the backend API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/coins", "/spend")
            json: Optional JSON body for POST requests
            params: Optional query parameters for GET requests
            timeout: Request timeout in seconds (default: 30)

        Returns:
            Response envelope. Error text comes from the server's
            ``{"error": ...}`` body when there is one.

        Note:
            Network failures are returned in the envelope, never raised.
        """
        url = f"{self.server_url}{endpoint}"

        try:
            response = requests.request(
                method=method.upper(),
                url=url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=timeout,
            )
        except requests.exceptions.ConnectionError:
            return {
                "success": False,
                "data": None,
                "error": f"Cannot connect to server at {self.server_url}",
                "status_code": 0,
            }
        except requests.exceptions.Timeout:
            return {
                "success": False,
                "data": None,
                "error": f"Request timed out after {timeout} seconds",
                "status_code": 0,
            }
        except requests.exceptions.RequestException as e:
            return {
                "success": False,
                "data": None,
                "error": f"Unexpected error: {e}",
                "status_code": 0,
            }

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code == 200:
            return {
                "success": True,
                "data": data,
                "error": None,
                "status_code": response.status_code,
            }
        return {
            "success": False,
            "data": None,
            "error": data.get("error", f"Request failed with status {response.status_code}"),
            "status_code": response.status_code,
        }

    def get(self, endpoint: str, params: dict | None = None, timeout: int = 30) -> dict[str, Any]:
        """Make a GET request to the API."""
        return self._make_request("GET", endpoint, params=params, timeout=timeout)

    def post(self, endpoint: str, json: dict | None = None, timeout: int = 30) -> dict[str, Any]:
        """Make a POST request to the API."""
        return self._make_request("POST", endpoint, json=json, timeout=timeout)

    # ------------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------------

    def health(self) -> dict[str, Any]:
        return self.get("/health")

    def register(self, phone: str, name: str | None = None) -> dict[str, Any]:
        """Register or refresh a player."""
        body: dict[str, Any] = {"phone": phone}
        if name is not None:
            body["name"] = name
        return self.post("/register", json=body)

    def award_party_result(
        self,
        phone: str,
        game_id: str,
        score: int | None = None,
        coins: int | None = None,
    ) -> dict[str, Any]:
        """Submit a party game result."""
        body: dict[str, Any] = {"phone": phone, "gameId": game_id}
        if score is not None:
            body["score"] = score
        if coins is not None:
            body["coins"] = coins
        return self.post("/partyResult", json=body)

    def spend(self, phone: str, amount: int, reason: str | None = None) -> dict[str, Any]:
        """Spend coins; fails with ``insufficient funds`` when the balance is low."""
        body: dict[str, Any] = {"phone": phone, "amount": amount}
        if reason is not None:
            body["reason"] = reason
        return self.post("/spend", json=body)

    def get_coins(self, phone: str) -> dict[str, Any]:
        return self.get("/coins", params={"phone": phone})

    def get_player(self, phone: str) -> dict[str, Any]:
        return self.get("/player", params={"phone": phone})

    def get_events(self, phone: str, limit: int | None = None) -> dict[str, Any]:
        """Fetch a player's event history, newest first."""
        params: dict[str, Any] = {"phone": phone}
        if limit is not None:
            params["limit"] = limit
        return self.get("/events", params=params)
