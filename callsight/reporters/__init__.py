"""Output reporters for callsight."""

from callsight.reporters.csv_export import DRILLDOWN_COLUMNS, parse_csv, serialize
from callsight.reporters.terminal import print_drilldown, print_kpis, print_view

__all__ = [
    "serialize",
    "parse_csv",
    "DRILLDOWN_COLUMNS",
    "print_view",
    "print_drilldown",
    "print_kpis",
]
