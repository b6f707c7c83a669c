"""Query service boundary.

The analytics backend is slow (seconds to minutes per query). The engine
only needs one operation from it: run a named query for a date range and a
filter map, eventually yielding a succeeded or failed QueryResult.
"""

from __future__ import annotations

import logging
from typing import Protocol

from callsight.types import QueryRequest, QueryResult

logger = logging.getLogger(__name__)


class QueryFailed(Exception):
    """The backend reported a failed query or could not be reached."""


class QueryService(Protocol):
    """Protocol for analytics query backends."""

    async def run(
        self,
        query_name: str,
        boundaries: tuple[str, str],
        filters: dict[str, list[str]],
    ) -> QueryResult: ...


async def execute(service: QueryService, request: QueryRequest) -> QueryResult:
    """Run a request and fold every failure mode into a QueryResult.

    Returns a failed result (never raises) for QueryFailed, transport errors,
    and results the backend left pending.
    """
    boundaries = request.date_range.to_query_boundaries()
    filters = request.filters.to_wire()
    logger.debug(
        "Running %s %s..%s filters=%s", request.query_name, boundaries[0], boundaries[1], filters
    )
    try:
        result = await service.run(request.query_name, boundaries, filters)
    except QueryFailed as e:
        return QueryResult.failed(str(e))
    except Exception as e:
        logger.warning("Query %s raised %s: %s", request.query_name, type(e).__name__, e)
        return QueryResult.failed(str(e) or type(e).__name__)

    if result.is_pending:
        return QueryResult.failed(f"Query {request.query_name} returned no final status")
    return result
