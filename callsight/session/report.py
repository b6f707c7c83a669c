"""Report session: one page, one date range, one filter set.

Replaces the per-page fetch/filter/tab/drilldown control flow with a single
object driven by UI events (tab switch, apply, refresh, reset, row click).
Every event handler is synchronous; calls to the backend are issued as
asyncio tasks and resolved through the view store and drilldown controller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

from callsight.notify import LoggingNotifier, Notifier
from callsight.pages import PageConfig
from callsight.query.service import QueryService
from callsight.reporters.csv_export import DRILLDOWN_COLUMNS, serialize
from callsight.session.drilldown import DrilldownController
from callsight.session.view_store import ViewStore
from callsight.types import (
    DateRange,
    DrilldownState,
    FilterSet,
    QueryRequest,
    QueryResult,
    Row,
    ViewState,
)

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 30


@dataclass(frozen=True)
class ReportSnapshot:
    """Immutable view of everything the presentation layer renders."""

    page_id: str
    date_range: DateRange
    filters: FilterSet
    active_view: str
    views: dict[str, ViewState]
    drilldown: DrilldownState

    @property
    def active(self) -> ViewState:
        return self.views[self.active_view]


def search_rows(
    rows: Iterable[Mapping[str, str]],
    term: str | None,
    columns: Iterable[str],
) -> list[Row]:
    """Case-insensitive substring search over the given columns."""
    materialized = [dict(r) for r in rows]
    needle = (term or "").strip().lower()
    if not needle:
        return materialized
    columns = list(columns)
    return [
        row for row in materialized
        if any(needle in str(row.get(c) or "").lower() for c in columns)
    ]


class ReportSession:
    """Drives one report page from UI events."""

    def __init__(
        self,
        page: PageConfig,
        service: QueryService,
        notifier: Notifier | None = None,
        date_range: DateRange | None = None,
        default_days: int = DEFAULT_DAYS,
        cancel_superseded: bool = False,
        today: date | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            page: Page configuration (views, queries, drilldown keys).
            service: Backend executing the named queries.
            notifier: Receives user-facing notifications.
            date_range: Initial range (default: last `default_days` days).
            default_days: Length of the default and reset range.
            cancel_superseded: Cancel in-flight calls replaced by newer ones.
            today: Reference date for relative ranges (default: today).
        """
        self.page = page
        self.default_days = default_days
        self._today = today
        self.date_range = date_range or self._default_range()
        self.filters = FilterSet()
        self.active_view = page.default_view
        notifier = notifier if notifier is not None else LoggingNotifier()
        self.views = ViewStore(
            service,
            page,
            self.request_for,
            notifier=notifier,
            cancel_superseded=cancel_superseded,
        )
        self.drilldown = DrilldownController(
            service, page, notifier=notifier, cancel_superseded=cancel_superseded
        )

    def _default_range(self) -> DateRange:
        return DateRange.last_n_days(self.default_days, today=self._today)

    def request_for(self, view_id: str) -> QueryRequest:
        """The request a view would issue under the current range and filters."""
        view = self.page.view(view_id)
        date_range = self.date_range.first_day() if view.single_day else self.date_range
        return QueryRequest(view.query, date_range, self.filters)

    # --- Shared state edits (never fetch) ---

    def set_date_range(self, date_range: DateRange) -> None:
        self.date_range = date_range

    def set_quick_range(self, days: int) -> None:
        self.date_range = DateRange.last_n_days(days, today=self._today)

    def set_filter(self, key: str, values: str | Iterable[str] | None) -> None:
        """Set the selected values of one filter dimension.

        Raises:
            ValueError: If the page cannot be filtered by `key`.
        """
        if key not in self.page.filter_keys:
            raise ValueError(
                f"Page '{self.page.page_id}' has no '{key}' filter. "
                f"Available: {', '.join(self.page.filter_keys) or 'none'}"
            )
        self.filters = self.filters.merge({key: values})

    # --- Events ---

    def start(self) -> asyncio.Task[QueryResult] | None:
        """First page load."""
        return self.views.activate(self.active_view)

    def switch_tab(self, view_id: str) -> asyncio.Task[QueryResult] | None:
        """Activate another view; cached views are shown without a fetch."""
        self.page.view(view_id)
        self.drilldown.close()
        self.active_view = view_id
        return self.views.activate(view_id)

    def apply(self) -> asyncio.Task[QueryResult]:
        """Reload the active view with the current range and filters.

        Other views are marked stale and re-fetch on their next activation;
        their cached results stay available for equal requests.
        """
        others = [v for v in self.page.view_ids if v != self.active_view]
        self.views.invalidate(others)
        return self.views.reload(self.active_view)

    def refresh(self) -> asyncio.Task[QueryResult]:
        """Like apply(), but also discards cached results of the other views."""
        others = [v for v in self.page.view_ids if v != self.active_view]
        self.views.invalidate(others, evict=True)
        return self.views.reload(self.active_view)

    def reset(self) -> asyncio.Task[QueryResult]:
        """Restore the default range and clear filters, then apply."""
        self.date_range = self._default_range()
        self.filters = FilterSet()
        return self.apply()

    def open_drilldown(
        self, row: Mapping[str, str], view_id: str | None = None
    ) -> asyncio.Task[QueryResult]:
        """Drill into an aggregate row of a view (default: active view).

        The detail query uses the date range the row was loaded with, so
        the detail rows refine exactly the aggregate on screen.
        """
        view_id = view_id or self.active_view
        state = self.views.state(view_id)
        date_range = state.request.date_range if state.request else self.date_range
        return self.drilldown.open(row, view_id, date_range)

    def close_drilldown(self) -> None:
        self.drilldown.close()

    # --- Rendering helpers ---

    def visible_rows(self, view_id: str | None = None, search: str | None = None) -> list[Row]:
        view = self.page.view(view_id or self.active_view)
        return search_rows(self.views.state(view.view_id).rows, search, view.search_columns)

    def export_view(self, view_id: str | None = None, search: str | None = None) -> bytes:
        return serialize(self.visible_rows(view_id, search))

    def export_drilldown(self) -> bytes:
        return serialize(self.drilldown.state.rows, DRILLDOWN_COLUMNS)

    def snapshot(self) -> ReportSnapshot:
        return ReportSnapshot(
            page_id=self.page.page_id,
            date_range=self.date_range,
            filters=self.filters,
            active_view=self.active_view,
            views=self.views.states(),
            drilldown=self.drilldown.state,
        )

    @property
    def is_busy(self) -> bool:
        drilldown = self.drilldown.state.result
        return self.views.is_loading or (drilldown is not None and drilldown.is_pending)

    async def wait_idle(self) -> None:
        """Wait for every outstanding call of the session to be processed."""
        await self.views.wait_idle()
        await self.drilldown.wait_idle()
