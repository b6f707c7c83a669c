"""Rich terminal output for report views, drilldowns and KPIs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from callsight.metrics import KpiSummary
from callsight.reporters.csv_export import DRILLDOWN_COLUMNS, column_order
from callsight.types import DateRange, DrilldownState, ViewState, ViewStatus

console = Console()

NUMERIC_COLUMNS = {
    "received",
    "answered",
    "unanswered",
    "abandoned",
    "transferred",
    "max_callers",
    "avg_wait",
    "avg_talk",
    "sla",
    "%_answered",
    "%_unanswered",
    "percentage",
}


def format_percentage(value: float) -> str:
    """Format a ratio as a percentage."""
    return f"{value * 100:.1f}%"


def build_table(
    rows: Sequence[Mapping[str, str]],
    columns: Sequence[str] | None = None,
    title: str | None = None,
) -> Table:
    """Build a rich table showing rows verbatim.

    Cell values, column names and the title are backend text and are never
    parsed as rich markup.
    """
    columns = list(columns) if columns is not None else column_order(rows)
    table = Table(
        show_header=True, header_style="bold", title=Text(title) if title is not None else None
    )
    for column in columns:
        justify = "right" if column in NUMERIC_COLUMNS else "left"
        table.add_column(Text(column), justify=justify, no_wrap=column.endswith("_id"))
    for row in rows:
        table.add_row(*[Text(str(row.get(c, ""))) for c in columns])
    return table


def print_view(
    state: ViewState,
    label: str,
    rows: Sequence[Mapping[str, str]] | None = None,
    out: Console | None = None,
) -> None:
    """Print one view: its rows, an explicit empty state, or its error.

    Args:
        state: View snapshot.
        label: Heading for the view.
        rows: Rows to show instead of the state's rows (e.g. search results).
        out: Console to print to.
    """
    out = out or console
    out.print()
    if state.status is ViewStatus.FAILED:
        out.print(Panel(Text(state.error or "", style="red"), title=Text(f"{label} - failed")))
        return
    if state.status is not ViewStatus.LOADED:
        out.print(
            Panel(Text(state.status.value.replace("_", " "), style="dim"), title=Text(label))
        )
        return

    shown = list(rows) if rows is not None else list(state.rows)
    if not shown:
        out.print(Panel(Text("No data available", style="yellow"), title=Text(label)))
        return
    out.print(build_table(shown, title=label))
    out.print(f"[dim]{len(shown)} of {len(state.rows)} rows[/dim]")


def print_drilldown(state: DrilldownState, out: Console | None = None) -> None:
    """Print the drilldown dialog contents."""
    out = out or console
    out.print()
    if not state.is_open:
        return
    title = Text(state.title)
    if state.status is ViewStatus.FAILED:
        out.print(Panel(Text(state.error or "", style="red"), title=title))
        return
    if not state.rows:
        out.print(Panel(Text("No contact data available", style="yellow"), title=title))
        return

    columns = [c for c in DRILLDOWN_COLUMNS if any(r.get(c) for r in state.rows)]
    out.print(build_table(state.rows, columns=columns, title=state.title))
    if state.scope is not None:
        out.print(f"[dim]Contact details from {state.scope.date_range.describe()}[/dim]")


def print_kpis(summary: KpiSummary, date_range: DateRange, out: Console | None = None) -> None:
    """Print the overview KPI cards."""
    out = out or console
    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Share", justify="right")

    table.add_row("Total Calls", str(summary.total_calls), "")
    table.add_row(
        "Answered", str(summary.answered), Text(format_percentage(summary.answer_rate), style="green")
    )
    table.add_row(
        "Missed", str(summary.missed), Text(format_percentage(summary.miss_rate), style="red")
    )
    sla = f"{summary.avg_sla:.0f}%" if summary.avg_sla is not None else "n/a"
    table.add_row("Avg SLA (mean of queues)", sla, "")

    out.print()
    out.print(Panel(table, title="Overview", subtitle=date_range.describe()))
