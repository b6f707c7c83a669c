"""KPI summary over aggregate rows.

The backend returns pre-aggregated, pre-formatted rows. The overview page
only needs totals and simple ratios of those totals, plus an SLA figure.

The SLA shown here is the unweighted mean of the per-queue SLA percentages.
It is an approximation: the true service level would weight each queue by
its call volume, which only the backend can compute exactly.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass


def parse_count(value: str | None) -> int:
    """Parse a display count such as "1,234" (blank or invalid -> 0)."""
    if value is None:
        return 0
    text = str(value).replace(",", "").strip()
    if not text:
        return 0
    try:
        return int(float(text))
    except ValueError:
        return 0


def parse_percentage(value: str | None) -> float | None:
    """Parse a display percentage such as "85.5%" or "85.5"."""
    if value is None:
        return None
    text = str(value).replace("%", "").replace(",", "").strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


@dataclass
class KpiSummary:
    """Headline numbers for a set of aggregate rows."""

    total_calls: int = 0
    answered: int = 0
    missed: int = 0
    avg_sla: float | None = None
    queue_count: int = 0

    @property
    def answer_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.answered / self.total_calls

    @property
    def miss_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.missed / self.total_calls


def summarize(rows: Iterable[Mapping[str, str]]) -> KpiSummary:
    """Sum received/answered/unanswered and average the SLA column."""
    summary = KpiSummary()
    slas: list[float] = []
    for row in rows:
        summary.queue_count += 1
        summary.total_calls += parse_count(row.get("received"))
        summary.answered += parse_count(row.get("answered"))
        summary.missed += parse_count(row.get("unanswered"))
        sla = parse_percentage(row.get("sla"))
        if sla is not None:
            slas.append(sla)
    if slas:
        summary.avg_sla = sum(slas) / len(slas)
    return summary


def top_rows(
    rows: Iterable[Mapping[str, str]], column: str = "received", limit: int = 10
) -> list[dict[str, str]]:
    """Rows ordered by a count column, largest first."""
    ranked = sorted((dict(r) for r in rows), key=lambda r: parse_count(r.get(column)), reverse=True)
    return ranked[:limit]
