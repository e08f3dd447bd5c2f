"""Async HTTP client wrapper for the HubSpot CRM REST API.

Provides HubSpotClient covering the calls the PO portal makes: deal lookup
and name search, v4 association listing, batch and single object reads,
file upload, note engagements, and deal property patches.

Every call uses bearer-token auth, is tracked in the CRM Prometheus metrics
and logged with structlog. There is no retry layer and no explicit
timeout beyond the httpx default: a failed call is either degraded
or surfaced by the caller.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from src.sketch_review.core.monitoring import track_crm_call

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.hubapi.com"


class HubSpotAPIError(Exception):
    """Raised when HubSpot answers a call with a non-2xx status.

    Attributes:
        operation: Human-readable name of the failed call.
        status_code: HTTP status returned by HubSpot.
        body: Parsed JSON error body, or the raw text when it is not JSON.
    """

    def __init__(self, operation: str, status_code: int, body: Any, text: str = "") -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        self.text = text
        super().__init__(f"HubSpot {operation} failed: {status_code} {text[:300]}")

    @classmethod
    def from_response(cls, operation: str, response: httpx.Response) -> HubSpotAPIError:
        text = response.text
        try:
            body: Any = response.json()
        except (json.JSONDecodeError, ValueError):
            body = text
        return cls(operation, response.status_code, body, text)


class HubSpotClient:
    """Async client for the HubSpot CRM API.

    Args:
        token: Private app access token (sent as a bearer token).
        base_url: API root (default: https://api.hubapi.com).
        transport: Optional httpx transport, used by tests to stand in for
            the HubSpot API.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._auth_headers = {"Authorization": f"Bearer {token}"}

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client carrying the bearer token."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._auth_headers,
            transport=self._transport,
        )

    async def _send(self, operation: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with track_crm_call(operation) as tracker:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
            tracker["status"] = str(response.status_code)
        logger.debug(
            "hubspot.request",
            operation=operation,
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return response

    @staticmethod
    def _check(operation: str, response: httpx.Response) -> httpx.Response:
        if not response.is_success:
            raise HubSpotAPIError.from_response(operation, response)
        return response

    # ── Deals ────────────────────────────────────────────────────────────

    async def get_deal(self, deal_id: str, properties: list[str]) -> dict[str, Any] | None:
        """Fetch a deal by id. Returns None for any non-2xx status.

        GET /crm/v3/objects/deals/{deal_id}?properties=...
        """
        response = await self._send(
            "deal lookup",
            "GET",
            f"/crm/v3/objects/deals/{_segment(deal_id)}",
            params={"properties": ",".join(properties)},
        )
        if not response.is_success:
            logger.info("hubspot.deal_not_found", deal_id=deal_id, status_code=response.status_code)
            return None
        return response.json()

    async def search_deals_by_name(
        self,
        value: str,
        properties: list[str],
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        """Search deals whose name contains ``value`` as a token.

        POST /crm/v3/objects/deals/search. Returns an empty list for any
        non-2xx status.
        """
        response = await self._send(
            "deal search",
            "POST",
            "/crm/v3/objects/deals/search",
            json={
                "filterGroups": [
                    {
                        "filters": [
                            {
                                "propertyName": "dealname",
                                "operator": "CONTAINS_TOKEN",
                                "value": value,
                            }
                        ]
                    }
                ],
                "properties": properties,
                "limit": limit,
            },
        )
        if not response.is_success:
            logger.info("hubspot.deal_search_failed", value=value, status_code=response.status_code)
            return []
        return response.json().get("results") or []

    async def update_deal(self, deal_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        """Patch deal properties.

        PATCH /crm/v3/objects/deals/{deal_id}

        Raises:
            HubSpotAPIError: On a non-2xx status.
        """
        response = self._check(
            "deal update",
            await self._send(
                "deal update",
                "PATCH",
                f"/crm/v3/objects/deals/{_segment(deal_id)}",
                json={"properties": properties},
            ),
        )
        logger.info("hubspot.deal_updated", deal_id=deal_id, fields=sorted(properties))
        return response.json() if response.content else {}

    # ── Associations and objects ─────────────────────────────────────────

    async def get_associations(
        self,
        from_type: str,
        object_id: str,
        to_type: str,
    ) -> list[dict[str, Any]]:
        """List association results in the order HubSpot returns them.

        GET /crm/v4/objects/{from_type}/{object_id}/associations/{to_type}

        Raises:
            HubSpotAPIError: On a non-2xx status.
        """
        response = self._check(
            f"{to_type} association",
            await self._send(
                f"{to_type} association",
                "GET",
                f"/crm/v4/objects/{from_type}/{_segment(object_id)}/associations/{to_type}",
            ),
        )
        return response.json().get("results") or []

    async def batch_read(
        self,
        object_type: str,
        ids: list[str],
        properties: list[str],
    ) -> list[dict[str, Any]]:
        """Read several objects of one type in a single call.

        POST /crm/v3/objects/{object_type}/batch/read

        Raises:
            HubSpotAPIError: On a non-2xx status.
        """
        response = self._check(
            f"{object_type} batch read",
            await self._send(
                f"{object_type} batch read",
                "POST",
                f"/crm/v3/objects/{object_type}/batch/read",
                json={"inputs": [{"id": i} for i in ids], "properties": properties},
            ),
        )
        return response.json().get("results") or []

    async def get_object(
        self,
        object_type: str,
        object_id: str,
        properties: list[str],
    ) -> dict[str, Any] | None:
        """Fetch one object by id. Returns None for any non-2xx status.

        GET /crm/v3/objects/{object_type}/{object_id}?properties=...
        """
        response = await self._send(
            f"{object_type} lookup",
            "GET",
            f"/crm/v3/objects/{object_type}/{_segment(object_id)}",
            params={"properties": ",".join(properties)},
        )
        if not response.is_success:
            return None
        return response.json()

    # ── Files and engagements ────────────────────────────────────────────

    async def upload_file(
        self,
        content: bytes,
        file_name: str,
        content_type: str,
        folder_path: str,
    ) -> dict[str, Any]:
        """Upload a private file to the HubSpot file manager.

        POST /files/v3/files (multipart). Returns the file record, which
        carries ``id`` and ``url``.

        Raises:
            HubSpotAPIError: On a non-2xx status.
        """
        response = self._check(
            "file upload",
            await self._send(
                "file upload",
                "POST",
                "/files/v3/files",
                files={"file": (file_name, content, content_type)},
                data={
                    "options": json.dumps({"access": "PRIVATE", "overwrite": False}),
                    "folderPath": folder_path,
                },
            ),
        )
        data = response.json()
        logger.info("hubspot.file_uploaded", file_id=data.get("id"), file_name=file_name)
        return data

    async def create_note(
        self,
        deal_id: str,
        body: str,
        attachment_ids: list[str],
        timestamp_ms: int,
    ) -> dict[str, Any]:
        """Create a NOTE engagement on a deal with file attachments.

        POST /engagements/v1/engagements

        Raises:
            HubSpotAPIError: On a non-2xx status.
        """
        response = self._check(
            "note creation",
            await self._send(
                "note creation",
                "POST",
                "/engagements/v1/engagements",
                json={
                    "engagement": {"active": True, "type": "NOTE", "timestamp": timestamp_ms},
                    "associations": {"dealIds": [_numeric_id(deal_id)]},
                    "metadata": {"body": body},
                    "attachments": [{"id": a} for a in attachment_ids],
                },
            ),
        )
        logger.info("hubspot.note_created", deal_id=deal_id)
        return response.json()


def _numeric_id(value: str) -> int | str:
    """Engagement associations take numeric ids; pass through anything else."""
    text = str(value)
    return int(text) if text.isdigit() else text


def _segment(value: str) -> str:
    """Quote an id for use as a single URL path segment."""
    return quote(str(value), safe="")
