"""Offline query service answering from CSV files.

Each named query is read from ``<directory>/<query_name>.csv``. Filters are
applied against the dimension columns so drilldowns narrow the same way the
backend does. Useful for demos, local development and tests.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from callsight.reporters.csv_export import parse_csv
from callsight.types import QueryResult

logger = logging.getLogger(__name__)

FILTER_COLUMNS = {
    "queueId": "queue_id",
    "did": "did",
    "agentId": "agent_id",
    "channel": "channel",
}


class FixtureQueryService:
    """Query service reading result rows from CSV fixtures."""

    def __init__(self, directory: str | Path, latency: float = 0.0) -> None:
        self.directory = Path(directory)
        self.latency = latency
        self.calls: list[str] = []

    async def run(
        self,
        query_name: str,
        boundaries: tuple[str, str],
        filters: dict[str, list[str]],
    ) -> QueryResult:
        self.calls.append(query_name)
        if self.latency:
            await asyncio.sleep(self.latency)

        path = self.directory / f"{query_name}.csv"
        if not path.exists():
            return QueryResult.failed(f"No fixture for query '{query_name}' in {self.directory}")

        rows = parse_csv(path.read_bytes())
        for wire_key, values in filters.items():
            column = FILTER_COLUMNS.get(wire_key, wire_key)
            allowed = set(values)
            rows = [r for r in rows if r.get(column, "") in allowed]

        logger.debug("Fixture %s matched %d rows for %s", path.name, len(rows), filters)
        return QueryResult.succeeded(rows)
