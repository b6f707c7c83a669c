"""callsight CLI - explore call-center reports from the terminal."""

import asyncio
import logging
import sys
from datetime import date, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from callsight import __version__
from callsight.config import Config, load_config
from callsight.metrics import summarize, top_rows
from callsight.notify import ConsoleNotifier
from callsight.pages import BUILTIN_PAGES, OVERVIEW_HOUR_QUERY, OVERVIEW_QUEUE_QUERY, get_page
from callsight.query import FixtureQueryService, HttpQueryService, QueryService, execute
from callsight.reporters.csv_export import export_filename
from callsight.reporters.terminal import build_table, print_drilldown, print_kpis, print_view
from callsight.session import ReportSession
from callsight.types import DateRange, QueryRequest, QueryStatus, ViewStatus

console = Console()
logger = logging.getLogger("callsight")

DATE_FORMATS = ["%Y-%m-%d"]


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """callsight - call-center report queries and drilldowns.

    Loads aggregate views (by queue, phone number, hour or agent) from the
    analytics backend, drills into single rows and exports results to CSV.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def _config_option(func):
    return click.option(
        "-c",
        "--config",
        "config_path",
        type=click.Path(exists=True),
        help="Path to config file",
    )(func)


def _source_option(func):
    return click.option(
        "--fixtures",
        "fixtures_dir",
        type=click.Path(exists=True, file_okay=False),
        help="Answer queries from CSV files in this directory instead of the backend",
    )(func)


def _range_options(func):
    func = click.option(
        "--last",
        "last_days",
        type=click.IntRange(min=0),
        help="Quick range: the last N days up to today",
    )(func)
    func = click.option(
        "--end", type=click.DateTime(formats=DATE_FORMATS), help="End date (YYYY-MM-DD)"
    )(func)
    func = click.option(
        "--start", type=click.DateTime(formats=DATE_FORMATS), help="Start date (YYYY-MM-DD)"
    )(func)
    return func


def _load(config_path: str | None) -> Config:
    return load_config(Path(config_path) if config_path else None)


def _build_service(config: Config, fixtures_dir: str | None) -> QueryService:
    directory = fixtures_dir or config.fixtures_dir
    if directory:
        logger.debug("Using fixture query service in %s", directory)
        return FixtureQueryService(directory)
    return HttpQueryService(
        config.backend_url,
        headers=config.headers,
        timeout=config.timeout,
        poll_interval=config.poll_interval,
        max_wait=config.max_wait,
    )


def _resolve_range(
    start: datetime | None,
    end: datetime | None,
    last_days: int | None,
    default_days: int,
) -> DateRange:
    if last_days is not None:
        if start is not None or end is not None:
            raise click.BadParameter(
                "--last cannot be combined with --start/--end", param_hint="--last"
            )
        return DateRange.last_n_days(last_days)
    if start is None and end is None:
        try:
            return DateRange.last_n_days(default_days)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="default_days") from e
    end_day = end.date() if end else date.today()
    start_day = start.date() if start else end_day
    try:
        return DateRange(start=start_day, end=end_day)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--start/--end") from e


def _parse_pairs(pairs: tuple[str, ...], option: str) -> dict[str, list[str]]:
    """Parse repeated key=value options into a multi-value mapping."""
    parsed: dict[str, list[str]] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip() or not value.strip():
            raise click.BadParameter(f"Expected key=value, got '{pair}'", param_hint=option)
        parsed.setdefault(key.strip(), []).append(value.strip())
    return parsed


def _new_session(config: Config, page_id: str, service: QueryService, date_range: DateRange):
    try:
        page = get_page(page_id, config.pages)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PAGE") from e
    return ReportSession(
        page,
        service,
        notifier=ConsoleNotifier(),
        date_range=date_range,
        default_days=config.default_days,
        cancel_superseded=config.cancel_superseded,
    )


@main.command("pages")
@_config_option
def list_pages(config_path: str | None) -> None:
    """List report pages and their views."""
    config = _load(config_path)
    pages = {**BUILTIN_PAGES, **config.pages}

    table = Table(show_header=True, header_style="bold")
    table.add_column("Page", style="cyan")
    table.add_column("View")
    table.add_column("Query")
    table.add_column("Drilldown")
    for page in pages.values():
        for view in page.views:
            table.add_row(
                escape(page.page_id),
                escape(view.view_id),
                escape(view.query),
                escape(view.drilldown_query or "-"),
            )
    console.print(table)


@main.command()
@click.argument("page_id", metavar="PAGE")
@click.option("--view", "views", multiple=True, help="View(s) to load (default: first view)")
@click.option("--all-views", is_flag=True, help="Load every view of the page")
@_range_options
@click.option(
    "-f", "--filter", "filters", multiple=True, help="Dimension filter key=value (repeatable)"
)
@click.option("-s", "--search", help="Only show rows matching this text")
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False),
    help="Export each loaded view as CSV into this directory",
)
@_source_option
@_config_option
def report(
    page_id: str,
    views: tuple[str, ...],
    all_views: bool,
    start: datetime | None,
    end: datetime | None,
    last_days: int | None,
    filters: tuple[str, ...],
    search: str | None,
    output_dir: str | None,
    fixtures_dir: str | None,
    config_path: str | None,
) -> None:
    """Load and print the aggregate views of a report page.

    Examples:

        callsight report queue-matrix --all-views --last 7

        callsight report agent-performance -f queue=SALES -o exports/
    """
    config = _load(config_path)
    service = _build_service(config, fixtures_dir)
    date_range = _resolve_range(start, end, last_days, config.default_days)
    session = _new_session(config, page_id, service, date_range)

    try:
        for key, values in _parse_pairs(filters, "--filter").items():
            session.set_filter(key, values)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--filter") from e

    targets = list(session.page.view_ids if all_views else views or [session.page.default_view])
    try:
        for view_id in targets:
            session.page.view(view_id)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--view") from e

    async def _load_views() -> None:
        # Views load concurrently; each resolves into its own state.
        for view_id in targets:
            session.views.activate(view_id)
        await session.wait_idle()

    asyncio.run(_load_views())

    console.print(
        f"[bold]{escape(session.page.title)}[/bold] [dim]{session.date_range.describe()}, "
        f"{escape(session.filters.describe())}[/dim]"
    )
    failed = False
    for view_id in targets:
        state = session.views.state(view_id)
        view = session.page.view(view_id)
        print_view(state, view.label, rows=session.visible_rows(view_id, search), out=console)
        failed = failed or state.status is ViewStatus.FAILED

        if output_dir and state.status is ViewStatus.LOADED:
            path = Path(output_dir) / export_filename(session.page.page_id, view_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(session.export_view(view_id, search))
            console.print(f"[dim]Exported to {escape(str(path))}[/dim]")

    if failed:
        sys.exit(1)


@main.command()
@click.argument("page_id", metavar="PAGE")
@click.argument("view_id", metavar="VIEW")
@click.argument("key")
@_range_options
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    help="Export the contact rows as CSV",
)
@_source_option
@_config_option
def drilldown(
    page_id: str,
    view_id: str,
    key: str,
    start: datetime | None,
    end: datetime | None,
    last_days: int | None,
    output_path: str | None,
    fixtures_dir: str | None,
    config_path: str | None,
) -> None:
    """Show the contacts behind one aggregate row.

    KEY identifies the row by the view's key column (queue id, DID or agent
    id). The view is loaded first so the row's own date range is reused.

    Example:

        callsight drilldown missed-calls queue SALES --last 7
    """
    config = _load(config_path)
    service = _build_service(config, fixtures_dir)
    date_range = _resolve_range(start, end, last_days, config.default_days)
    session = _new_session(config, page_id, service, date_range)

    try:
        view = session.page.view(view_id)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VIEW") from e
    if not view.supports_drilldown:
        raise click.BadParameter(f"View '{view_id}' has no drilldown", param_hint="VIEW")
    key_column = view.key_columns[0][1]

    async def _drill() -> bool:
        session.switch_tab(view_id)
        await session.wait_idle()
        state = session.views.state(view_id)
        if state.status is not ViewStatus.LOADED:
            return False
        row = next((r for r in state.rows if r.get(key_column) == key), None)
        if row is None:
            console.print(f"[red]No row with {key_column}={escape(key)} in view {view_id}[/red]")
            return False
        session.open_drilldown(row, view_id)
        await session.wait_idle()
        return True

    if not asyncio.run(_drill()):
        sys.exit(1)

    state = session.drilldown.state
    print_drilldown(state, out=console)
    if state.status is ViewStatus.FAILED:
        sys.exit(1)
    if output_path:
        Path(output_path).write_bytes(session.export_drilldown())
        console.print(f"[dim]Exported {len(state.rows)} contacts to {escape(output_path)}[/dim]")


@main.command()
@click.option(
    "--days", type=click.IntRange(min=0), default=None, help="Days covered by the queue KPIs"
)
@click.option("--top", type=int, default=10, help="Number of queues to list")
@_source_option
@_config_option
def overview(
    days: int | None,
    top: int,
    fixtures_dir: str | None,
    config_path: str | None,
) -> None:
    """Headline KPIs, top queues and today's hourly traffic."""
    config = _load(config_path)
    service = _build_service(config, fixtures_dir)
    try:
        date_range = DateRange.last_n_days(days if days is not None else config.default_days)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="default_days") from e
    today = DateRange.today()

    async def _fetch():
        return await asyncio.gather(
            execute(service, QueryRequest(OVERVIEW_QUEUE_QUERY, date_range)),
            execute(service, QueryRequest(OVERVIEW_HOUR_QUERY, today)),
        )

    queues, hours = asyncio.run(_fetch())
    if queues.status is not QueryStatus.SUCCEEDED:
        console.print(f"[red]Failed to load dashboard data: {escape(queues.error or '')}[/red]")
        sys.exit(1)

    print_kpis(summarize(queues.rows), date_range, out=console)
    console.print(build_table(top_rows(queues.rows, limit=top), title=f"Queue Performance (Top {top})"))
    if hours.status is QueryStatus.SUCCEEDED and hours.rows:
        console.print(build_table(hours.rows, title="Today's Hourly Traffic"))
    elif hours.status is QueryStatus.FAILED:
        console.print(f"[yellow]Hourly data unavailable: {escape(hours.error or '')}[/yellow]")


@main.command("config")
@_config_option
def show_config(config_path: str | None) -> None:
    """Show current configuration.

    Displays merged configuration from file and defaults.
    """
    config = _load(config_path)

    console.print("[bold]Current Configuration[/bold]")
    console.print(f"  backend_url: {config.backend_url}")
    console.print(f"  timeout: {config.timeout}")
    console.print(f"  poll_interval: {config.poll_interval}")
    console.print(f"  max_wait: {config.max_wait}")
    console.print(f"  default_days: {config.default_days}")
    console.print(f"  cancel_superseded: {config.cancel_superseded}")
    console.print(f"  fixtures_dir: {config.fixtures_dir}")
    console.print(f"  pages: {', '.join(config.pages) or '(built-in only)'}")


if __name__ == "__main__":
    main()
