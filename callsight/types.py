"""Core type definitions for callsight.

Value objects shared by the view store, the drilldown controller and the
query adapters. Everything here is immutable: state changes are expressed
by replacing a snapshot, never by mutating one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

ALL = "ALL"

# Row values arrive pre-formatted from the backend (counts, percentages and
# durations are all display strings).
Row = dict[str, str]

WIRE_FILTER_KEYS = {
    "queue": "queueId",
    "did": "did",
    "agent": "agentId",
    "channel": "channel",
}

BOUNDARY_FORMAT = "%Y-%m-%d"


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range used as a query boundary.

    Attributes:
        start: First day of the range.
        end: Last day of the range (included in full).
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _as_date(self.start))
        object.__setattr__(self, "end", _as_date(self.end))
        if self.start > self.end:
            raise ValueError(
                f"Start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    @classmethod
    def last_n_days(cls, days: int, today: date | None = None) -> DateRange:
        """Range covering the last `days` days up to and including today."""
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")
        end = _as_date(today) if today else date.today()
        return cls(start=end - timedelta(days=days), end=end)

    @classmethod
    def single_day(cls, day: date | datetime) -> DateRange:
        return cls(start=day, end=day)

    @classmethod
    def today(cls, today: date | None = None) -> DateRange:
        return cls.single_day(today or date.today())

    def first_day(self) -> DateRange:
        """Single-day range of the start date."""
        return DateRange(start=self.start, end=self.start)

    def to_query_boundaries(self) -> tuple[str, str]:
        """Encode the range as backend start/end tokens.

        The end token always points at the last instant of the end day so
        that a range ending today includes the whole of today.
        """
        start_token = f"{self.start.strftime(BOUNDARY_FORMAT)} 00:00:00.000"
        end_token = f"{self.end.strftime(BOUNDARY_FORMAT)} 23:59:59.999"
        return start_token, end_token

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def describe(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


def _normalize_values(values: str | Iterable[str] | None) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    cleaned = frozenset(str(v).strip() for v in values if str(v).strip())
    if ALL in cleaned:
        return frozenset()
    return cleaned


@dataclass(frozen=True)
class FilterSet:
    """Selected values per filter dimension.

    An absent key means "no constraint on that dimension". The ``ALL``
    sentinel is dropped on construction, so ``{"queue": ["ALL"]}`` and ``{}``
    compare (and hash) equal.
    """

    entries: tuple[tuple[str, frozenset[str]], ...] = ()

    @classmethod
    def of(cls, mapping: Mapping[str, str | Iterable[str] | None] | None = None) -> FilterSet:
        """Build a FilterSet from a plain mapping."""
        entries = []
        for key, values in (mapping or {}).items():
            normalized = _normalize_values(values)
            if normalized:
                entries.append((key, normalized))
        return cls(entries=tuple(sorted(entries)))

    def merge(self, partial: Mapping[str, str | Iterable[str] | None]) -> FilterSet:
        """Return a new FilterSet with the given keys overwritten.

        A value of ``None``, ``ALL`` or an empty collection removes the key.
        """
        current: dict[str, str | Iterable[str] | None] = dict(self.entries)
        current.update(partial)
        return FilterSet.of(current)

    def get(self, key: str) -> frozenset[str]:
        return dict(self.entries).get(key, frozenset())

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]

    @property
    def is_unconstrained(self) -> bool:
        return not self.entries

    def to_wire(self) -> dict[str, list[str]]:
        """Filter map in the shape the query backend expects."""
        return {
            WIRE_FILTER_KEYS.get(key, key): sorted(values)
            for key, values in self.entries
        }

    def describe(self) -> str:
        if not self.entries:
            return "no filters"
        return ", ".join(f"{k}={'|'.join(sorted(v))}" for k, v in self.entries)


@dataclass(frozen=True)
class QueryRequest:
    """A named query bound to a date range and filters.

    Equal requests are interchangeable, which is what makes them usable as
    cache keys.
    """

    query_name: str
    date_range: DateRange
    filters: FilterSet = field(default_factory=FilterSet)


class QueryStatus(Enum):
    """Lifecycle status of a query execution."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one query execution.

    Attributes:
        status: Pending until the backend answers, then succeeded or failed.
        rows: Result rows in backend order.
        row_count: Row count reported by the backend.
        error: Error message for failed executions.
    """

    status: QueryStatus
    rows: tuple[Row, ...] = ()
    row_count: int = 0
    error: str | None = None

    @classmethod
    def pending(cls) -> QueryResult:
        return cls(status=QueryStatus.PENDING)

    @classmethod
    def succeeded(cls, rows: Iterable[Mapping[str, str]], row_count: int | None = None) -> QueryResult:
        materialized = tuple(dict(r) for r in rows)
        return cls(
            status=QueryStatus.SUCCEEDED,
            rows=materialized,
            row_count=len(materialized) if row_count is None else row_count,
        )

    @classmethod
    def failed(cls, error: str) -> QueryResult:
        return cls(status=QueryStatus.FAILED, error=error or "Query failed")

    def resolve(self, outcome: QueryResult) -> QueryResult:
        """Perform the single pending -> terminal transition."""
        if self.status is not QueryStatus.PENDING:
            raise ValueError(f"Result already resolved as {self.status.value}")
        if outcome.status is QueryStatus.PENDING:
            raise ValueError("Cannot resolve a result to pending")
        return outcome

    @property
    def is_pending(self) -> bool:
        return self.status is QueryStatus.PENDING


class ViewStatus(Enum):
    """Load status of a view as exposed to the presentation layer."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


def _status_of(request: QueryRequest | None, result: QueryResult | None) -> ViewStatus:
    if request is None or result is None:
        return ViewStatus.NOT_LOADED
    if result.status is QueryStatus.PENDING:
        return ViewStatus.LOADING
    if result.status is QueryStatus.SUCCEEDED:
        return ViewStatus.LOADED
    return ViewStatus.FAILED


@dataclass(frozen=True)
class ViewState:
    """Snapshot of one aggregation view (tab).

    `request_serial` counts the requests issued for this view; only the
    response carrying the current serial may update the snapshot.
    """

    view_id: str
    request: QueryRequest | None = None
    result: QueryResult | None = None
    request_serial: int = 0

    @property
    def status(self) -> ViewStatus:
        return _status_of(self.request, self.result)

    @property
    def rows(self) -> tuple[Row, ...]:
        if self.status is ViewStatus.LOADED and self.result is not None:
            return self.result.rows
        return ()

    @property
    def error(self) -> str | None:
        if self.status is ViewStatus.FAILED and self.result is not None:
            return self.result.error
        return None

    @property
    def is_empty(self) -> bool:
        """Loaded successfully with zero rows (the explicit "no data" state)."""
        return self.status is ViewStatus.LOADED and not self.rows


@dataclass(frozen=True)
class DrilldownScope:
    """Which aggregate row was clicked and how the detail query is narrowed."""

    parent_row: Row
    parent_view: str
    derived_filters: FilterSet
    date_range: DateRange


@dataclass(frozen=True)
class DrilldownState:
    """Snapshot of the single live drilldown."""

    scope: DrilldownScope | None = None
    request: QueryRequest | None = None
    result: QueryResult | None = None
    title: str = ""
    serial: int = 0

    @classmethod
    def closed(cls, serial: int = 0) -> DrilldownState:
        return cls(serial=serial)

    @property
    def is_open(self) -> bool:
        return self.scope is not None

    @property
    def status(self) -> ViewStatus:
        return _status_of(self.request, self.result)

    @property
    def rows(self) -> tuple[Row, ...]:
        if self.status is ViewStatus.LOADED and self.result is not None:
            return self.result.rows
        return ()

    @property
    def error(self) -> str | None:
        if self.status is ViewStatus.FAILED and self.result is not None:
            return self.result.error
        return None


class NotificationKind(Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    ERROR = "error"
