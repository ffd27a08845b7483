"""Extractors for sheet CSV exports and platform workbooks."""

from .csv_line import parse_csv_line
from .tabular import extract_metric_series, locate_header
from .workbook import compute_derived_ratios, merge_workbook_exports

__all__ = [
    "compute_derived_ratios",
    "extract_metric_series",
    "locate_header",
    "merge_workbook_exports",
    "parse_csv_line",
]
