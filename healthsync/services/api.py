"""Shared httpx plumbing for the Amach web backend (``/api/storj``, ``/api/attestations``)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from healthsync.config import Settings, get_settings
from healthsync.errors import NetworkError

logger = logging.getLogger("healthsync.api")


class AmachApiClient:
    """Base class for JSON-over-POST clients of the Amach backend.

    Subclasses set ``error_class`` so every failure surfaces as the right
    NetworkError subclass.
    """

    error_class: type[NetworkError] = NetworkError

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:    Backend root URL.  Defaults to Settings.api_base_url.
            timeout:     Request timeout in seconds.  Defaults to Settings.api_timeout_seconds.
            http_client: Optional pre-configured httpx client (for testing).
            settings:    Settings override.
        """
        s = settings or get_settings()
        self._base_url = (base_url or s.api_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else s.api_timeout_seconds
        self._user_agent = s.user_agent
        self._http_client = http_client

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON body and return the decoded JSON response.

        Raises:
            NetworkError (``error_class``): On transport errors, non-2xx
                responses, or an undecodable body.
        """
        url = f"{self._base_url}{path}"
        headers = self._build_headers()

        try:
            if self._http_client:
                response = await self._http_client.post(url, json=body, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("POST %s failed: %s", path, exc)
            raise self.error_class(f"Request to {path} failed: {exc}") from exc

        if not response.is_success:
            message = f"HTTP error: {response.status_code}"
            user_message = None
            try:
                detail = response.json()
            except ValueError:
                detail = None
            if isinstance(detail, dict) and detail.get("error"):
                user_message = str(detail["error"])
                message = f"{message}: {user_message}"
            logger.warning("POST %s returned %s", path, message)
            raise self.error_class(message, user_message=user_message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise self.error_class(f"Failed to decode response from {path}") from exc
