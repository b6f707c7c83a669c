"""CSV export of result sets.

Serializes aggregate or drilldown rows to CSV bytes entirely in memory.
Writing the bytes somewhere is left to the caller.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence

DRILLDOWN_COLUMNS = (
    "contact_id",
    "contact_date",
    "agent_name",
    "queue_name",
    "customer_number",
    "did",
    "channel",
    "initiation_method",
    "interaction_status",
    "ring_time",
    "wait_time",
    "talk_time",
)


def column_order(rows: Iterable[Mapping[str, str]]) -> list[str]:
    """Columns in the order they first appear across the rows."""
    seen: dict[str, None] = {}
    for row in rows:
        for column in row:
            seen.setdefault(column, None)
    return list(seen)


def serialize(
    rows: Sequence[Mapping[str, str]],
    columns: Sequence[str] | None = None,
) -> bytes:
    """Serialize rows to UTF-8 CSV.

    Args:
        rows: Rows to export.
        columns: Explicit column order. Defaults to first-seen order.

    Returns:
        CSV bytes with a header line, or b"" when there is nothing to export.
    """
    header = list(columns) if columns is not None else column_order(rows)
    if not header:
        return b""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if row.get(c) is None else str(row.get(c)) for c in header])
    return buffer.getvalue().encode("utf-8")


def parse_csv(data: bytes | str) -> list[dict[str, str]]:
    """Parse CSV produced by serialize() (or any headed CSV) into rows."""
    text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
    reader = csv.DictReader(io.StringIO(text, newline=""))
    return [{k: v if v is not None else "" for k, v in row.items()} for row in reader]


def export_filename(page_id: str, view_id: str) -> str:
    return f"{page_id}-{view_id}.csv"
