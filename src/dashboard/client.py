"""httpx-based client for the users listing endpoint.

``fetch_users`` returns the decoded JSON body or raises
ListingOfflineError / ListingError / MalformedResponseError.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.dashboard.models import INVALID_RESPONSE_MESSAGE, MalformedResponseError
from src.stats.formatting import safe_json_parse

logger = logging.getLogger(__name__)


class ListingOfflineError(Exception):
    """Raised when the listing endpoint is unreachable or times out."""


class ListingError(Exception):
    """Raised when the listing endpoint returns an error status."""

    def __init__(self, status_code: int, detail: str, payload: Any = None) -> None:
        self.status_code = status_code
        self.detail = detail
        self.payload = payload
        super().__init__(f"Listing error {status_code}: {detail}")


class ListingClient:
    """Synchronous httpx client for GET {base_url}{path}."""

    def __init__(
        self,
        base_url: str,
        path: str = "/api/users",
        token: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path = path if path.startswith("/") else f"/{path}"
        self._token = token
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._base_url}{self._path}"

    @property
    def _headers(self) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    def _get(self, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.get(self.url, headers=self._headers, params=params)
        except httpx.ConnectError:
            raise ListingOfflineError("Network error. Please check your connection.")
        except httpx.TimeoutException:
            raise ListingOfflineError("Listing request timed out")
        except httpx.TransportError as e:
            raise ListingOfflineError(f"Network error: {e}")

        if resp.status_code >= 400:
            payload = safe_json_parse(resp.text)
            detail = resp.text
            if isinstance(payload, dict):
                detail = payload.get("message") or payload.get("detail") or resp.text
            raise ListingError(resp.status_code, str(detail), payload)
        return resp

    def fetch_users(self) -> Any:
        """GET the listing and return its decoded JSON body."""
        resp = self._get()
        try:
            return resp.json()
        except ValueError as e:
            logger.debug("Listing body is not JSON: %s", resp.text[:200])
            raise MalformedResponseError(INVALID_RESPONSE_MESSAGE) from e
