"""Aggregate-to-detail drilldown.

Turns a clicked aggregate row into a detail query narrowed to exactly the
dimension(s) that identify the row, and holds the single live drilldown.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Mapping

from callsight.notify import Notifier, safe_notify
from callsight.pages import PageConfig, ViewConfig
from callsight.query.service import QueryService, execute
from callsight.types import (
    DateRange,
    DrilldownScope,
    DrilldownState,
    FilterSet,
    NotificationKind,
    QueryRequest,
    QueryResult,
    QueryStatus,
)

logger = logging.getLogger(__name__)


class DrilldownController:
    """Opens, replaces and closes the drilldown of a report page."""

    def __init__(
        self,
        service: QueryService,
        page: PageConfig,
        notifier: Notifier | None = None,
        cancel_superseded: bool = False,
    ) -> None:
        self.service = service
        self.page = page
        self.notifier = notifier
        self.cancel_superseded = cancel_superseded
        self._serial = 0
        self._state = DrilldownState.closed()
        self._task: asyncio.Task[QueryResult] | None = None

    @property
    def state(self) -> DrilldownState:
        return self._state

    async def wait_idle(self) -> None:
        while self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def derive_filters(self, parent_row: Mapping[str, str], view_id: str) -> FilterSet:
        """Filters selecting exactly the records behind an aggregate row.

        Each dimension the view is keyed by is constrained to the row's
        value; every other dimension stays unconstrained.

        Raises:
            ValueError: If the view has no drilldown or the row lacks a key.
        """
        view = self.page.view(view_id)
        if not view.supports_drilldown:
            raise ValueError(f"View '{view_id}' of page '{self.page.page_id}' has no drilldown")

        constraints: dict[str, str] = {}
        for filter_key, column in view.key_columns:
            value = str(parent_row.get(column) or "").strip()
            if not value:
                raise ValueError(
                    f"Row has no '{column}' value, cannot drill down into view '{view_id}'"
                )
            constraints[filter_key] = value
        return FilterSet.of(constraints)

    def open(
        self,
        parent_row: Mapping[str, str],
        view_id: str,
        date_range: DateRange,
    ) -> asyncio.Task[QueryResult]:
        """Open (or replace) the drilldown for a row of a view."""
        derived = self.derive_filters(parent_row, view_id)
        view = self.page.view(view_id)
        assert view.drilldown_query is not None

        scope = DrilldownScope(
            parent_row=dict(parent_row),
            parent_view=view_id,
            derived_filters=derived,
            date_range=date_range,
        )
        request = QueryRequest(view.drilldown_query, date_range, derived)

        self._serial += 1
        serial = self._serial
        self._cancel_inflight()
        self._state = DrilldownState(
            scope=scope,
            request=request,
            result=QueryResult.pending(),
            title=_title(view, parent_row, derived),
            serial=serial,
        )
        logger.info(
            "Opening drilldown %s for view %s (%s)", request.query_name, view_id, derived.describe()
        )

        task = asyncio.ensure_future(execute(self.service, request))
        task.add_done_callback(functools.partial(self._on_done, serial))
        self._task = task
        return task

    def close(self) -> None:
        """Discard the current drilldown and any response still in flight."""
        if not self._state.is_open:
            return
        self._serial += 1
        self._cancel_inflight()
        self._state = DrilldownState.closed(serial=self._serial)

    def on_result(self, serial: int, result: QueryResult) -> None:
        if serial != self._serial or self._state.result is None:
            logger.debug("Discarding drilldown response for serial %d (current %d)", serial, self._serial)
            return
        if not self._state.result.is_pending:
            return

        resolved = self._state.result.resolve(result)
        self._state = DrilldownState(
            scope=self._state.scope,
            request=self._state.request,
            result=resolved,
            title=self._state.title,
            serial=serial,
        )
        if resolved.status is QueryStatus.FAILED:
            logger.warning("Drilldown failed: %s", resolved.error)
            view = self.page.view(self._state.scope.parent_view)
            safe_notify(
                self.notifier,
                NotificationKind.ERROR,
                view.failure_title,
                resolved.error or "Unknown error",
            )

    def _cancel_inflight(self) -> None:
        task, self._task = self._task, None
        if self.cancel_superseded and task is not None and not task.done():
            task.cancel()

    def _on_done(self, serial: int, task: asyncio.Task[QueryResult]) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.on_result(serial, QueryResult.failed(str(error) or type(error).__name__))
            return
        self.on_result(serial, task.result())


def _title(view: ViewConfig, row: Mapping[str, str], derived: FilterSet) -> str:
    label = next((str(row[c]) for c in view.title_columns if row.get(c)), "")
    if not label:
        label = " / ".join(sorted(v for _, values in derived.entries for v in values))
    return view.title_template.format(label=label)
