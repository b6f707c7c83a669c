"""HTTP adapter for the analytics query API.

Queries are submitted with ``POST {base_url}/queries/{name}``. The API either
answers immediately with a terminal status or returns a query execution id
that is polled until the query finishes (Athena-style execution).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from callsight.query.service import QueryFailed
from callsight.types import QueryResult, Row

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"SUCCEEDED", "FAILED", "CANCELLED"}
RUNNING_STATUSES = {"QUEUED", "RUNNING"}

# Columns renamed on the way in so the rest of the package sees one schema.
COLUMN_ALIASES = {
    "interation_status": "interaction_status",
}


def normalize_row(raw: dict[str, Any]) -> Row:
    """Turn a backend row into display strings with canonical column names."""
    row: Row = {}
    for key, value in raw.items():
        name = COLUMN_ALIASES.get(key, key)
        row[name] = "" if value is None else str(value)
    return row


class HttpQueryService:
    """Query service backed by the analytics HTTP API."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        poll_interval: float = 2.0,
        max_wait: float = 600.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Base URL of the query API.
            headers: Extra headers for every request.
            timeout: Per-request timeout in seconds.
            poll_interval: Seconds between polls of a running query.
            max_wait: Give up on a query after this many seconds.
            client: Optional preconfigured client (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._client = client

    async def run(
        self,
        query_name: str,
        boundaries: tuple[str, str],
        filters: dict[str, list[str]],
    ) -> QueryResult:
        payload = {
            "startDate": boundaries[0],
            "endDate": boundaries[1],
            "filters": filters,
        }
        if self._client is not None:
            return await self._run(self._client, query_name, payload)

        async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
            return await self._run(client, query_name, payload)

    async def _run(
        self,
        client: httpx.AsyncClient,
        query_name: str,
        payload: dict[str, Any],
    ) -> QueryResult:
        started = time.monotonic()
        body = await self._request(client, "POST", f"/queries/{query_name}", json=payload)
        status = str(body.get("status", "")).upper()

        while status in RUNNING_STATUSES:
            execution_id = body.get("queryExecutionId")
            if not execution_id:
                raise QueryFailed(f"Query {query_name} is {status} but has no execution id")
            if time.monotonic() - started > self.max_wait:
                raise QueryFailed(
                    f"Query timed out after {self.max_wait:.0f}s (execution {execution_id})"
                )
            logger.debug("Query %s is %s, polling in %.1fs", query_name, status, self.poll_interval)
            await asyncio.sleep(self.poll_interval)
            body = await self._request(client, "GET", f"/queries/executions/{execution_id}")
            status = str(body.get("status", "")).upper()

        if status == "SUCCEEDED":
            rows = [normalize_row(r) for r in body.get("data") or []]
            row_count = body.get("rowCount")
            return QueryResult.succeeded(
                rows, row_count=int(row_count) if row_count is not None else None
            )
        if status in TERMINAL_STATUSES:
            return QueryResult.failed(body.get("error") or f"Query {status.lower()}")
        raise QueryFailed(f"Unexpected query status '{status}' for {query_name}")

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(method, url, json=json, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise QueryFailed(
                f"Query API returned HTTP {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise QueryFailed(f"Query API unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise QueryFailed(f"Query API returned invalid JSON for {path}") from e
        if not isinstance(body, dict):
            raise QueryFailed(f"Query API returned unexpected payload for {path}")
        return body
