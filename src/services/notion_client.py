"""Async client for the Notion API, the CRM's record store.

Thin wrapper around httpx exposing the calls provisioning needs. Schema
patches go to /databases/{id} on older API versions and to
/data_sources/{id} on versions that split databases into data sources.
Error responses are translated into RecordStoreError, or ThrottledError
for HTTP 429 so the rate-limited executor can retry them.

Example:
    async with NotionClient(api_key="secret_...") as client:
        page = await client.create_page({...})
"""

import logging
import math
from typing import Any, Protocol

import httpx

from src.services.errors import RecordStoreError, ThrottledError

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"


class RecordStore(Protocol):
    """Operations the provisioner needs from the record store."""

    async def create_page(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a page (the container holding every database)."""
        ...

    async def create_database(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a database under a page."""
        ...

    async def update_database(
        self, database_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch a database's schema."""
        ...

    async def update_data_source(
        self, data_source_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch a data source's schema (API versions with data sources)."""
        ...


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    Args:
        value: Raw header value, or None when absent.

    Returns:
        Seconds to wait, or None when the header is missing, not numeric,
        negative or not finite (callers then fall back to exponential
        backoff).
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        logger.debug("Ignoring non-numeric Retry-After header: %r", value)
        return None
    if not math.isfinite(seconds) or seconds < 0:
        logger.debug("Ignoring out-of-range Retry-After header: %r", value)
        return None
    return seconds


class NotionClient:
    """RecordStore implementation backed by the Notion REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = NOTION_API_BASE,
        notion_version: str = NOTION_VERSION,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with an integration token.

        Args:
            api_key: Notion integration token. Never logged.
            base_url: API base URL.
            notion_version: Value for the Notion-Version header.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "NotionClient":
        """Return self; the httpx client is created eagerly."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the underlying httpx client."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    async def create_page(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a page via POST /pages."""
        return await self._request("POST", "/pages", payload)

    async def create_database(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a database via POST /databases."""
        return await self._request("POST", "/databases", payload)

    async def update_database(
        self, database_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch a database schema via PATCH /databases/{id}."""
        return await self._request("PATCH", f"/databases/{database_id}", payload)

    async def update_data_source(
        self, data_source_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch a data source schema via PATCH /data_sources/{id}."""
        return await self._request("PATCH", f"/data_sources/{data_source_id}", payload)

    async def _request(
        self, method: str, endpoint: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send one request and decode the JSON response.

        Raises:
            ThrottledError: On HTTP 429.
            RecordStoreError: On any other non-2xx status or transport failure.
        """
        try:
            resp = await self._client.request(method, endpoint, json=payload)
        except httpx.HTTPError as e:
            raise RecordStoreError(
                status_code=0,
                message=f"{method} {endpoint} failed: {e}",
            ) from e

        if resp.status_code == 429:
            raise ThrottledError(
                status_code=429,
                message="Rate limited",
                code="rate_limited",
                retry_after=parse_retry_after(resp.headers.get("retry-after")),
            )

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise RecordStoreError(
                status_code=resp.status_code,
                message=body.get("message") or resp.reason_phrase or "Request failed",
                code=body.get("code"),
            )

        logger.debug("%s %s -> %d", method, endpoint, resp.status_code)
        return resp.json()
