"""SensorChain HTTP client"""
from typing import Any, Dict, List, Optional

import requests


class SensorChainClient:
    """Client for a running SensorChain service.

    Read-only calls need no credentials; writes send ``X-Admin-Key``.
    """

    def __init__(self, base_url: str, admin_key: Optional[str] = None, timeout: float = 10.0):
        """
        Initialize SensorChain client.

        Args:
            base_url:  Base URL of the service (e.g. ``http://localhost:8000``).
            admin_key: Admin API key, required for append/reset/recover/attacks.
            timeout:   Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.admin_key = admin_key
        self.timeout = timeout
        self.session = requests.Session()

    def _request(self, method: str, endpoint: str, admin: bool = False, **kwargs: Any) -> requests.Response:
        """Make an HTTP request, raising ``requests.HTTPError`` on non-2xx responses.

        Raises:
            ValueError: If ``admin`` is set and no admin key is configured.
        """
        headers = kwargs.pop("headers", {})
        if admin:
            if not self.admin_key:
                raise ValueError("admin_key required for this operation")
            headers["X-Admin-Key"] = self.admin_key

        response = self.session.request(
            method, f"{self.base_url}{endpoint}", headers=headers, timeout=self.timeout, **kwargs
        )
        response.raise_for_status()
        return response

    # ========== Chain ==========

    def append(self, value: str, timestamp: Optional[str] = None) -> Dict[str, Any]:
        """Append a reading; the server clock is used when ``timestamp`` is omitted."""
        body: Dict[str, Any] = {"value": value}
        if timestamp:
            body["timestamp"] = timestamp
        return self._request("POST", "/chain", admin=True, json=body).json()

    def sample(self) -> Dict[str, Any]:
        return self._request("POST", "/chain/sample", admin=True).json()

    def records(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        return self._request("GET", "/chain", params={"limit": limit, "offset": offset}).json()

    def tip(self) -> Dict[str, Any]:
        return self._request("GET", "/chain/tip").json()

    def verify(self) -> Dict[str, Any]:
        """Verify the chain; ``valid`` is False for tampered or stale-anchor results."""
        return self._request("GET", "/chain/verify").json()

    def export(self) -> str:
        return self._request("GET", "/chain/export").text

    def reset(self, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", "/chain/reset", admin=True, json={"reason": reason}).json()

    def recover(self) -> Dict[str, Any]:
        return self._request("POST", "/chain/recover", admin=True).json()

    # ========== Attacks (ATTACKS_ENABLED servers only) ==========

    def attack(self, kind: str, **body: Any) -> Dict[str, Any]:
        """Run a demonstration attack, e.g. ``attack("edit", position=1, new_value="99.9")``."""
        return self._request("POST", f"/attacks/{kind}", admin=True, json=body).json()
