"""Report session orchestration."""

from callsight.session.drilldown import DrilldownController
from callsight.session.report import ReportSession, ReportSnapshot, search_rows
from callsight.session.view_store import ViewStore

__all__ = [
    "ViewStore",
    "DrilldownController",
    "ReportSession",
    "ReportSnapshot",
    "search_rows",
]
