"""Report page definitions.

A page is a small configuration: which named queries back each view, which
row columns identify an aggregate row for drilldown, and how rows and titles
are labelled. The view store and drilldown controller are generic over it.
"""

from __future__ import annotations

from dataclasses import dataclass

from callsight.types import WIRE_FILTER_KEYS

DIMENSIONS = tuple(WIRE_FILTER_KEYS)


@dataclass(frozen=True)
class ViewConfig:
    """One aggregation view (tab) of a report page.

    Attributes:
        view_id: Identifier of the view ("queue", "did", ...).
        label: Human-readable name used in notifications.
        query: Named aggregate query backing the view.
        noun: Singular noun for a row, used in "Showing N <noun>s".
        key_columns: Filter key -> row column identifying a row for drilldown.
            A view with two entries (e.g. per-queue-per-DID) scopes both.
        drilldown_query: Named detail query, or None if the view has no drilldown.
        title_template: Drilldown title, formatted with ``label``.
        title_columns: Row columns tried in order to build the title label.
        search_columns: Row columns matched by the search box.
        single_day: Query only the first day of the session's date range.
        failure_title: Notification title when the drilldown fails.
    """

    view_id: str
    label: str
    query: str
    noun: str = "row"
    key_columns: tuple[tuple[str, str], ...] = ()
    drilldown_query: str | None = None
    title_template: str = "Contact Details - {label}"
    title_columns: tuple[str, ...] = ()
    search_columns: tuple[str, ...] = ()
    single_day: bool = False
    failure_title: str = "Failed to load contact details"

    @property
    def supports_drilldown(self) -> bool:
        return self.drilldown_query is not None and bool(self.key_columns)

    def pluralize(self, count: int) -> str:
        return self.noun if count == 1 else f"{self.noun}s"


@dataclass(frozen=True)
class PageConfig:
    """A report page: an ordered set of views sharing one date range.

    `filter_keys` lists the dimensions the page can be filtered by.
    """

    page_id: str
    title: str
    views: tuple[ViewConfig, ...]
    description: str = ""
    filter_keys: tuple[str, ...] = DIMENSIONS

    def __post_init__(self) -> None:
        if not self.views:
            raise ValueError(f"Page '{self.page_id}' defines no views")
        ids = [v.view_id for v in self.views]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Page '{self.page_id}' has duplicate view ids: {ids}")

    @property
    def view_ids(self) -> list[str]:
        return [v.view_id for v in self.views]

    @property
    def default_view(self) -> str:
        return self.views[0].view_id

    def view(self, view_id: str) -> ViewConfig:
        for view in self.views:
            if view.view_id == view_id:
                return view
        raise ValueError(
            f"Unknown view '{view_id}' for page '{self.page_id}'. "
            f"Available: {', '.join(self.view_ids)}"
        )


def _queue_view(query: str, drilldown: str, title: str) -> ViewConfig:
    return ViewConfig(
        view_id="queue",
        label="Queue",
        query=query,
        noun="queue",
        key_columns=(("queue", "queue_id"),),
        drilldown_query=drilldown,
        title_template=title,
        title_columns=("queue_name", "queue_id"),
        search_columns=("queue_id", "queue_name"),
    )


def _did_view(query: str, drilldown: str, title: str) -> ViewConfig:
    return ViewConfig(
        view_id="did",
        label="DID",
        query=query,
        noun="phone number",
        key_columns=(("did", "did"),),
        drilldown_query=drilldown,
        title_template=title,
        title_columns=("did",),
        search_columns=("did",),
    )


QUEUE_MATRIX = PageConfig(
    page_id="queue-matrix",
    title="Queue Matrix",
    description="Queue performance metrics by queue, phone number and hour",
    views=(
        _queue_view("distribution-by-queue", "distribution-drilldown", "Contact Details - {label}"),
        _did_view("distribution-by-did", "distribution-drilldown", "Contact Details - {label}"),
        ViewConfig(
            view_id="hour",
            label="Hourly",
            query="distribution-by-hour",
            noun="hour",
            search_columns=("hour",),
            single_day=True,
        ),
    ),
)

MISSED_CALLS = PageConfig(
    page_id="missed-calls",
    title="Missed Calls Analysis",
    description="Unanswered calls by queue or phone number",
    views=(
        _queue_view("unanswered-by-queue", "unanswered-drilldown", "Missed Calls - {label}"),
        _did_view("unanswered-by-did", "unanswered-drilldown", "Missed Calls - {label}"),
    ),
)

AGENT_PERFORMANCE = PageConfig(
    page_id="agent-performance",
    title="Agent Performance",
    description="Answered calls per agent",
    filter_keys=("queue",),
    views=(
        ViewConfig(
            view_id="agent",
            label="Agent",
            query="answered-by-agent",
            noun="agent",
            key_columns=(("agent", "agent_id"),),
            drilldown_query="answered-drilldown",
            title_template="{label}'s Calls",
            failure_title="Failed to load agent details",
            title_columns=("agent_name", "agent_id"),
            search_columns=("agent_name", "agent_id"),
        ),
    ),
)

BUILTIN_PAGES: dict[str, PageConfig] = {
    page.page_id: page for page in (QUEUE_MATRIX, MISSED_CALLS, AGENT_PERFORMANCE)
}

OVERVIEW_QUEUE_QUERY = "distribution-by-queue"
OVERVIEW_HOUR_QUERY = "distribution-by-hour"


def get_page(page_id: str, extra: dict[str, PageConfig] | None = None) -> PageConfig:
    """Look up a page by id, preferring user-defined pages."""
    pages = {**BUILTIN_PAGES, **(extra or {})}
    if page_id not in pages:
        raise ValueError(
            f"Unknown page '{page_id}'. Available: {', '.join(sorted(pages))}"
        )
    return pages[page_id]
