"""Configuration loading for callsight."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from callsight.pages import DIMENSIONS, PageConfig, ViewConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "callsight.yml"


@dataclass
class Config:
    """Global configuration for callsight.

    Attributes:
        backend_url: Base URL of the analytics query API.
        headers: Extra HTTP headers sent with every query.
        timeout: Per-request HTTP timeout in seconds.
        poll_interval: Seconds between status polls of a running query.
        max_wait: Maximum seconds to wait for a query to finish.
        default_days: Length of the default (and reset) date range.
        cancel_superseded: Cancel in-flight calls replaced by a newer request.
        fixtures_dir: Answer queries from CSV files in this directory.
        pages: User-defined report pages, keyed by page id.
    """

    backend_url: str = "http://localhost:8000/api"
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    poll_interval: float = 2.0
    max_wait: float = 600.0
    default_days: int = 30
    cancel_superseded: bool = False
    fixtures_dir: str | None = None
    pages: dict[str, PageConfig] = field(default_factory=dict)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file.

    Args:
        config_path: Path to config file. If None, looks for callsight.yml
            in current directory.

    Returns:
        Loaded configuration.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

    if not config_path.exists():
        logger.debug("No config file found at %s, using defaults", config_path)
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    pages = {}
    for page_data in data.get("pages", []) or []:
        page = _parse_page(page_data)
        pages[page.page_id] = page

    return Config(
        backend_url=data.get("backend_url", "http://localhost:8000/api"),
        headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
        timeout=float(data.get("timeout", 30.0)),
        poll_interval=float(data.get("poll_interval", 2.0)),
        max_wait=float(data.get("max_wait", 600.0)),
        default_days=int(data.get("default_days", 30)),
        cancel_superseded=bool(data.get("cancel_superseded", False)),
        fixtures_dir=data.get("fixtures_dir"),
        pages=pages,
    )


def _parse_key_columns(data: Any) -> tuple[tuple[str, str], ...]:
    """Parse drilldown key columns from a mapping or a list of pairs."""
    if not data:
        return ()
    if isinstance(data, dict):
        return tuple((str(k), str(v)) for k, v in data.items())
    return tuple((str(item["filter"]), str(item["column"])) for item in data)


def _parse_view(data: dict[str, Any]) -> ViewConfig:
    """Parse a view from YAML data."""
    if "id" not in data or "query" not in data:
        raise ValueError(f"View definition needs 'id' and 'query': {data}")

    return ViewConfig(
        view_id=data["id"],
        label=data.get("label", data["id"].title()),
        query=data["query"],
        noun=data.get("noun", "row"),
        key_columns=_parse_key_columns(data.get("key_columns")),
        drilldown_query=data.get("drilldown"),
        title_template=data.get("title", "Contact Details - {label}"),
        title_columns=tuple(data.get("title_columns", [])),
        search_columns=tuple(data.get("search_columns", [])),
        single_day=bool(data.get("single_day", False)),
        failure_title=data.get("failure_title", "Failed to load contact details"),
    )


def _parse_page(data: dict[str, Any]) -> PageConfig:
    """Parse a report page from YAML data."""
    if "id" not in data:
        raise ValueError(f"Page definition needs an 'id': {data}")

    return PageConfig(
        page_id=data["id"],
        title=data.get("title", data["id"]),
        description=data.get("description", ""),
        filter_keys=tuple(data.get("filters", DIMENSIONS)),
        views=tuple(_parse_view(v) for v in data.get("views", [])),
    )
