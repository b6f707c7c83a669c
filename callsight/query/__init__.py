"""Query service adapters for callsight."""

from callsight.query.fixtures import FixtureQueryService
from callsight.query.http import HttpQueryService
from callsight.query.service import QueryFailed, QueryService, execute

__all__ = [
    "QueryService",
    "QueryFailed",
    "execute",
    "HttpQueryService",
    "FixtureQueryService",
]
