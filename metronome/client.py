"""
MetronomeClient - async REST client for the Metronome endpoints.

Uses httpx.AsyncClient. No call raises for HTTP or transport failures: every
method returns a CollaboratorResult, and callers decide what a failure means
(a stale slice on refresh, a rollback on mutation).

Successful responses are ``{"data": ...}``; errors are ``{"error": "..."}``.
No timeouts are set.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from metronome.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class CollaboratorResult:
    """Outcome of one call to the collaborator."""

    success: bool
    data: Any = None  # unwrapped "data" member of the response
    error: str | None = None
    http_status: int | None = None
    network_error: bool = False  # no HTTP response at all
    server_error: str | None = None  # "error" member of an error response


class MetronomeClient:
    """Reads and writes Metronome entities over HTTP."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        api_prefix: str = "/api/metronome",
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=None,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "MetronomeClient":
        return cls(settings.base_url, settings.api_prefix, transport=transport)

    async def __aenter__(self) -> "MetronomeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ==================== Transport ====================

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> CollaboratorResult:
        url = f"{self.api_prefix}/{path.lstrip('/')}"
        try:
            response = await self._http.request(method, url, params=params, json=json_data)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return self._http_failure(method, url, e.response)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            return CollaboratorResult(success=False, error=str(e), network_error=True)

        if not response.content:
            return CollaboratorResult(success=True, http_status=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            logger.warning("%s %s returned invalid JSON: %s", method, url, e)
            return CollaboratorResult(
                success=False, error="Invalid JSON response", http_status=response.status_code
            )
        data = body.get("data") if isinstance(body, dict) else body
        return CollaboratorResult(success=True, data=data, http_status=response.status_code)

    def _http_failure(self, method: str, url: str, response: httpx.Response) -> CollaboratorResult:
        error = f"HTTP {response.status_code}"
        server_error = None
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("error"):
                server_error = error = str(body["error"])
        except ValueError:
            if response.text:
                error = response.text
        logger.warning("%s %s returned %s: %s", method, url, response.status_code, error)
        return CollaboratorResult(
            success=False, error=error, http_status=response.status_code, server_error=server_error
        )

    # ==================== Reads ====================

    async def get_summary(self) -> CollaboratorResult:
        return await self._request("GET", "syncs/summary")

    async def list_initiatives(self, **filters: str) -> CollaboratorResult:
        return await self._request("GET", "initiatives", params=filters or None)

    async def list_decisions(self, status: str = "open") -> CollaboratorResult:
        return await self._request("GET", "decisions", params={"status": status})

    async def list_key_dates(self, start: date, end: date) -> CollaboratorResult:
        return await self._request(
            "GET", "key-dates", params={"from": start.isoformat(), "to": end.isoformat()}
        )

    async def list_action_items(self) -> CollaboratorResult:
        """All action items in one call; callers group them by initiative."""
        return await self._request("GET", "action-items")

    async def list_syncs(self, limit: int = 1) -> CollaboratorResult:
        return await self._request("GET", "syncs", params={"limit": limit})

    # ==================== Writes ====================

    async def patch_action_item(self, body: dict) -> CollaboratorResult:
        return await self._request("PATCH", "action-items", json_data=body)

    async def create_action_item(self, body: dict) -> CollaboratorResult:
        return await self._request("POST", "action-items", json_data=body)

    async def delete_action_item(self, body: dict) -> CollaboratorResult:
        return await self._request("DELETE", "action-items", json_data=body)

    async def patch_decision(self, body: dict) -> CollaboratorResult:
        return await self._request("PATCH", "decisions", json_data=body)

    async def patch_initiative(self, initiative_id: str, body: dict) -> CollaboratorResult:
        return await self._request("PATCH", f"initiatives/{initiative_id}", json_data=body)

    async def create_initiative(self, body: dict) -> CollaboratorResult:
        return await self._request("POST", "initiatives", json_data=body)

    async def create_sync(self, body: dict) -> CollaboratorResult:
        return await self._request("POST", "syncs", json_data=body)

    async def patch_sync(self, sync_id: str, body: dict) -> CollaboratorResult:
        return await self._request("PATCH", f"syncs/{sync_id}", json_data=body)
