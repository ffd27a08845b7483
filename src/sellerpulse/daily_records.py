"""Per-product daily records: the contract with the daily-metrics store.

A daily frame has one row per date (``date`` as ``YYYY-MM-DD``) and one
column per storage column of the metric registry.  The store itself lives
outside this package; these helpers only shape records going in and
datasets coming out.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .common.config_validator import ProductConfig
from .errors import UnknownProductError
from .extraction.csv_line import parse_csv_line, split_lines
from .extraction.values import parse_iso_date, safe_to_float
from .metric_registry_utils import (
    DAILY_COLUMNS,
    canonical_for_column,
    canonical_metrics,
    match_to_canonical,
    storage_columns,
)
from .models import DashboardDataset, MetricSeries

LOGGER_NAME = "sellerpulse.records"

ALL_PRODUCTS = "All Products"

TEMPLATE_HEADER = [
    "Date",
    "GMV",
    "Items Sold",
    "Orders",
    "AOV",
    "Units per Order",
    "Product Impressions",
    "Page Views",
    "Click-through Rate",
    "Visitors",
    "Customers",
    "Conv. Rate",
    "$ per Visitor",
    "$ per Customer",
    "Subscribers",
]

TEMPLATE_EXAMPLE = ["2026-01-20", "1000.00", "50", "25", "40.00", "2.0", "5000", "1000", "20.0", "500", "100", "20.0", "2.00", "10.00", "10"]


def _empty_daily_frame(columns: Sequence[str] = DAILY_COLUMNS) -> pd.DataFrame:
    return pd.DataFrame(columns=["date", *columns])


def dataset_to_daily_frame(dataset: DashboardDataset) -> pd.DataFrame:
    """Pivot an extracted dataset into one row per header date.

    Metrics outside the canonical vocabulary are ignored.  Columns follow the
    registry order, so two imports of the same sheet produce identical frames.
    """
    if not dataset.dates:
        return _empty_daily_frame([])

    data: Dict[str, List[object]] = {"date": [d.isoformat() for d in dataset.dates]}
    for canonical in canonical_metrics:
        series = dataset.get(canonical)
        if series is None:
            continue
        by_date = {p.date: p.value for p in series.values}
        data[storage_columns[canonical]] = [by_date.get(d, np.nan) for d in dataset.dates]
    return pd.DataFrame(data)


def daily_frame_to_dataset(frame: pd.DataFrame, source_name: str = "") -> DashboardDataset:
    """Turn stored daily rows back into metric series, sorted by date.

    Missing values read as 0.0 and a metric is only included when at least
    one of its values is non-zero.
    """
    if frame is None or frame.empty or "date" not in frame.columns:
        return DashboardDataset(source_name=source_name)

    df = frame.copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df = df.dropna(subset=["date"]).sort_values("date", kind="mergesort").reset_index(drop=True)
    dates = tuple(ts.date() for ts in df["date"])

    metrics: List[MetricSeries] = []
    for column in DAILY_COLUMNS:
        if column not in df.columns:
            continue
        values = pd.to_numeric(df[column], errors="coerce").fillna(0.0).astype(float)
        if not (values != 0).any():
            continue
        metrics.append(MetricSeries.from_pairs(canonical_for_column(column), list(zip(dates, values.tolist()))))
    return DashboardDataset(source_name=source_name, metrics=tuple(metrics), dates=dates)


def parse_daily_csv(text: str) -> pd.DataFrame:
    """Parse a manual daily upload (header row of metric names, then one row per date).

    Headers match case-insensitively, including registry variants such as
    "Visitors"; unknown headers are ignored.  Blank cells stay missing and
    rows without a date are dropped.
    """
    logger = logging.getLogger(LOGGER_NAME)
    lines = split_lines(text)
    if len(lines) < 2:
        return _empty_daily_frame()

    # Excel "CSV UTF-8" saves start with a byte-order mark
    headers = parse_csv_line(lines[0].lstrip("\ufeff"))
    mapping: Dict[int, str] = {}
    date_idx: Optional[int] = None
    for idx, header in enumerate(headers):
        if header.strip().lower() == "date":
            date_idx = idx
            continue
        canonical = match_to_canonical(header)
        if canonical is None:
            if header:
                logger.debug("Ignoring unknown column %r", header)
            continue
        mapping.setdefault(idx, storage_columns[canonical])

    if date_idx is None:
        logger.warning("Daily CSV has no 'date' column")
        return _empty_daily_frame()

    records: List[Dict[str, object]] = []
    for line in lines[1:]:
        cells = parse_csv_line(line)
        raw_date = cells[date_idx] if date_idx < len(cells) else ""
        if not raw_date:
            continue
        record: Dict[str, object] = {"date": parse_iso_date(raw_date) or raw_date}
        for idx, column in mapping.items():
            value = safe_to_float(cells[idx]) if idx < len(cells) else None
            if value is not None:
                record[column] = value
        records.append(record)

    if not records:
        return _empty_daily_frame()
    columns = ["date", *[c for c in DAILY_COLUMNS if c in set(mapping.values())]]
    return pd.DataFrame.from_records(records).reindex(columns=columns)


def manual_entry_record(day: date | str, metrics: Mapping[str, object]) -> Dict[str, object]:
    """Single-day entry keyed by storage column; unknown metric names are ignored."""
    record: Dict[str, object] = {"date": day.isoformat() if isinstance(day, date) else str(day)}
    for name, value in metrics.items():
        canonical = match_to_canonical(name)
        if canonical is None:
            continue
        record[storage_columns[canonical]] = value
    return record


def daily_template_csv() -> str:
    """Text of the downloadable upload template: header, an example row, two blank dates."""
    blank = "," * (len(TEMPLATE_HEADER) - 1)
    lines = [
        ",".join(TEMPLATE_HEADER),
        ",".join(TEMPLATE_EXAMPLE),
        f"2026-01-21{blank}",
        f"2026-01-22{blank}",
    ]
    return "\n".join(lines)


def combine_daily_frames(
    frames: Iterable[pd.DataFrame],
    columns: Sequence[str] = ("gmv", "orders", "items_sold", "visitors"),
) -> pd.DataFrame:
    """Sum ``columns`` per date across products (the "All Products" view); missing -> 0."""
    parts = []
    for frame in frames:
        if frame is None or frame.empty:
            continue
        part = frame.reindex(columns=["date", *columns]).copy()
        part["date"] = pd.to_datetime(part["date"], errors="coerce").dt.strftime("%Y-%m-%d")
        for col in columns:
            part[col] = pd.to_numeric(part[col], errors="coerce").fillna(0.0)
        parts.append(part.dropna(subset=["date"]))
    if not parts:
        return _empty_daily_frame(list(columns))
    combined = pd.concat(parts, ignore_index=True)
    return combined.groupby("date", as_index=False)[list(columns)].sum().sort_values("date").reset_index(drop=True)


def resolve_product(catalog: Sequence[ProductConfig], name: str) -> ProductConfig:
    """Catalog entry for ``name`` (exact name, table or id)."""
    for product in catalog:
        if name in (product.name, product.table, product.id):
            return product
    raise UnknownProductError(f"Unknown product: {name!r}")
