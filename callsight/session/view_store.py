"""Per-view lazy loading, caching and race resolution.

Every view (tab) of a report page owns one ViewState. Loads run as asyncio
tasks; their outcome is handed back through a done-callback carrying the
request serial that was current when the call was issued. A response whose
serial is no longer current belongs to a superseded request and is dropped,
so a slow query for an old filter can never overwrite a newer result.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import replace

from callsight.notify import Notifier, safe_notify
from callsight.pages import PageConfig
from callsight.query.service import QueryService, execute
from callsight.types import (
    NotificationKind,
    QueryRequest,
    QueryResult,
    QueryStatus,
    ViewState,
    ViewStatus,
)

logger = logging.getLogger(__name__)


class ViewStore:
    """Owns the ViewState of every view of one report page."""

    def __init__(
        self,
        service: QueryService,
        page: PageConfig,
        request_for: Callable[[str], QueryRequest],
        notifier: Notifier | None = None,
        cancel_superseded: bool = False,
    ) -> None:
        """Initialize the store.

        Args:
            service: Backend executing the named queries.
            page: Page whose views this store manages.
            request_for: Builds the current request for a view from the
                session's date range and filters.
            notifier: Receives load/failure notifications.
            cancel_superseded: Cancel an in-flight call when a newer request
                for the same view is issued.
        """
        self.service = service
        self.page = page
        self.request_for = request_for
        self.notifier = notifier
        self.cancel_superseded = cancel_superseded
        self._states: dict[str, ViewState] = {}
        self._serials: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Task[QueryResult]] = {}
        self._pending: set[asyncio.Task[QueryResult]] = set()
        # Holds at most the latest succeeded request of each view.
        self._cache: dict[QueryRequest, QueryResult] = {}
        self._cached_request: dict[str, QueryRequest] = {}

    # --- Queries ---

    def state(self, view_id: str) -> ViewState:
        """Current snapshot of a view (NOT_LOADED if never activated)."""
        self.page.view(view_id)
        state = self._states.get(view_id)
        if state is None:
            return ViewState(view_id=view_id, request_serial=self._serials.get(view_id, 0))
        return state

    def states(self) -> dict[str, ViewState]:
        return {view_id: self.state(view_id) for view_id in self.page.view_ids}

    @property
    def is_loading(self) -> bool:
        return any(s.status is ViewStatus.LOADING for s in self._states.values())

    async def wait_idle(self) -> None:
        """Wait until every issued call has resolved and been processed."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Events ---

    def activate(self, view_id: str) -> asyncio.Task[QueryResult] | None:
        """Show a view, loading it only if it has never been loaded.

        Loaded, failed and loading views are left alone. A not-loaded view
        whose request matches a cached result is filled from the cache.

        Returns:
            The task of the issued call, or None if nothing was fetched.
        """
        state = self.state(view_id)
        if state.status is not ViewStatus.NOT_LOADED:
            logger.debug("View %s is %s, not reloading", view_id, state.status.value)
            return None

        request = self.request_for(view_id)
        cached = self._cache.get(request)
        if cached is not None:
            serial = self._next_serial(view_id)
            self._states[view_id] = ViewState(
                view_id=view_id, request=request, result=cached, request_serial=serial
            )
            logger.debug("View %s served from cache (%d rows)", view_id, len(cached.rows))
            return None

        return self._issue(view_id, request)

    def reload(
        self, view_id: str, request: QueryRequest | None = None
    ) -> asyncio.Task[QueryResult]:
        """Force a fetch for a view (Apply Filter / Refresh)."""
        self.page.view(view_id)
        return self._issue(view_id, request or self.request_for(view_id))

    def on_result(self, view_id: str, serial: int, result: QueryResult) -> None:
        """Apply a resolved call to the view if it is still the latest one."""
        current = self._serials.get(view_id, 0)
        if serial != current:
            logger.debug(
                "Discarding superseded response for view %s (serial %d, current %d)",
                view_id,
                serial,
                current,
            )
            return

        state = self._states.get(view_id)
        if state is None or state.result is None or not state.result.is_pending:
            logger.debug("Ignoring duplicate response for view %s serial %d", view_id, serial)
            return

        resolved = state.result.resolve(result)
        self._states[view_id] = replace(state, result=resolved)

        view = self.page.view(view_id)
        if resolved.status is QueryStatus.SUCCEEDED:
            if state.request is not None:
                self._remember(view_id, state.request, resolved)
            count = resolved.row_count
            safe_notify(
                self.notifier,
                NotificationKind.INFO,
                f"{view.label} data loaded successfully",
                f"Showing {count} {view.pluralize(count)}",
            )
        else:
            logger.warning("Load of view %s failed: %s", view_id, resolved.error)
            safe_notify(
                self.notifier,
                NotificationKind.ERROR,
                f"Failed to load {view.label} data",
                resolved.error or "Unknown error",
            )

    def invalidate(self, view_ids: list[str] | None = None, evict: bool = False) -> None:
        """Mark views stale so their next activation fetches again.

        Args:
            view_ids: Views to invalidate (default: every created view).
            evict: Also drop the cached results of their current requests.
        """
        targets = view_ids if view_ids is not None else list(self._states)
        for view_id in targets:
            state = self._states.get(view_id)
            if state is None:
                continue
            if evict:
                self._forget(view_id)
            serial = self._next_serial(view_id)
            self._cancel_inflight(view_id)
            self._states[view_id] = ViewState(view_id=view_id, request_serial=serial)
            logger.debug("Invalidated view %s (serial now %d)", view_id, serial)

    # --- Internals ---

    def _remember(self, view_id: str, request: QueryRequest, result: QueryResult) -> None:
        previous = self._cached_request.get(view_id)
        if previous is not None and previous != request:
            self._cache.pop(previous, None)
        self._cached_request[view_id] = request
        self._cache[request] = result

    def _forget(self, view_id: str) -> None:
        previous = self._cached_request.pop(view_id, None)
        if previous is not None:
            self._cache.pop(previous, None)

    def _next_serial(self, view_id: str) -> int:
        serial = self._serials.get(view_id, 0) + 1
        self._serials[view_id] = serial
        return serial

    def _cancel_inflight(self, view_id: str) -> None:
        previous = self._inflight.pop(view_id, None)
        if self.cancel_superseded and previous is not None and not previous.done():
            logger.debug("Cancelling superseded call for view %s", view_id)
            previous.cancel()

    def _issue(self, view_id: str, request: QueryRequest) -> asyncio.Task[QueryResult]:
        serial = self._next_serial(view_id)
        self._cancel_inflight(view_id)
        self._states[view_id] = ViewState(
            view_id=view_id,
            request=request,
            result=QueryResult.pending(),
            request_serial=serial,
        )
        logger.info(
            "Loading view %s: %s (%s, %s) serial=%d",
            view_id,
            request.query_name,
            request.date_range.describe(),
            request.filters.describe(),
            serial,
        )

        task = asyncio.ensure_future(execute(self.service, request))
        task.add_done_callback(functools.partial(self._on_done, view_id, serial))
        self._inflight[view_id] = task
        self._pending.add(task)
        return task

    def _on_done(self, view_id: str, serial: int, task: asyncio.Task[QueryResult]) -> None:
        self._pending.discard(task)
        if self._inflight.get(view_id) is task:
            del self._inflight[view_id]
        if task.cancelled():
            logger.debug("Call for view %s serial %d was cancelled", view_id, serial)
            return
        error = task.exception()
        if error is not None:
            self.on_result(view_id, serial, QueryResult.failed(str(error) or type(error).__name__))
            return
        self.on_result(view_id, serial, task.result())
