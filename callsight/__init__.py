"""callsight - Report query orchestration and drilldown for call-center analytics."""

from callsight.types import (
    ALL,
    DateRange,
    DrilldownScope,
    DrilldownState,
    FilterSet,
    NotificationKind,
    QueryRequest,
    QueryResult,
    QueryStatus,
    ViewState,
    ViewStatus,
)

__version__ = "0.1.0"

__all__ = [
    "ALL",
    "DateRange",
    "FilterSet",
    "QueryRequest",
    "QueryResult",
    "QueryStatus",
    "ViewState",
    "ViewStatus",
    "DrilldownScope",
    "DrilldownState",
    "NotificationKind",
    "__version__",
]
