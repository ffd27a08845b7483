"""Platform workbook exports: Product List + per-product Traffic Breakdown.

The Product List sheet reports GMV / Orders / Items sold for every product
over one reporting period, announced in its first row as
``YYYY-MM-DD ~ YYYY-MM-DD``.  Traffic sheets are exported per product and
carry one row per content type and date.  Both are merged into one record
per ``(product_id, date)`` and the storefront ratios are derived from the
merged totals.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..common.config_validator import ProductConfig, WorkbookConfig
from .values import cell_text, cell_to_float, parse_iso_date

LOGGER_NAME = "sellerpulse.workbook"

DATE_RANGE_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})\s*~\s*(\d{4}-\d{2}-\d{2})")

BASE_FIELDS = (
    "product_impressions",
    "page_views",
    "visitors",
    "customers",
    "gmv",
    "items_sold",
    "orders",
    "subscribers",
)

RATIO_FIELDS = (
    "conversion_rate",
    "aov",
    "units_per_order",
    "click_through_rate",
    "dollar_per_visitor",
    "dollar_per_customer",
)

# (output, numerator, denominator, scale)
RATIO_SPECS = (
    ("conversion_rate", "orders", "visitors", 100.0),
    ("aov", "gmv", "orders", 1.0),
    ("units_per_order", "items_sold", "orders", 1.0),
    ("click_through_rate", "page_views", "product_impressions", 100.0),
    ("dollar_per_visitor", "gmv", "visitors", 1.0),
    ("dollar_per_customer", "gmv", "customers", 1.0),
)

MERGED_COLUMNS = ["date", "product_id", "product_name", "table", *BASE_FIELDS, *RATIO_FIELDS]

Rows = Sequence[Sequence[object]]


def load_sheet_rows(path_or_buffer, sheet=0) -> List[List[object]]:
    """Read one worksheet as arrays-of-arrays of raw cell values (blank -> ``""``)."""
    df = pd.read_excel(path_or_buffer, sheet_name=sheet, header=None, dtype=object, engine="openpyxl")
    df = df.astype(object).where(pd.notna(df), "")
    return df.values.tolist()


def find_header_row(rows: Rows, required: Iterable[str], scan_rows: int) -> Optional[int]:
    """Index of the first row (within ``scan_rows``) containing every label in ``required``."""
    needed = list(required)
    for idx, row in enumerate(rows[:scan_rows]):
        cells = {cell_text(c) for c in row}
        if all(label in cells for label in needed):
            return idx
    return None


def _row_dict(headers: Sequence[str], row: Sequence[object]) -> Dict[str, object]:
    return {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers) if h}


def _catalog_by_id(catalog: Iterable[ProductConfig]) -> Dict[str, ProductConfig]:
    return {p.id: p for p in catalog}


def reporting_end_date(rows: Rows) -> Optional[str]:
    """End date of the ``YYYY-MM-DD ~ YYYY-MM-DD`` range in the sheet's first row."""
    if not rows:
        return None
    text = " ".join(cell_text(c) for c in rows[0])
    match = DATE_RANGE_PATTERN.search(text)
    return match.group(2) if match else None


def extract_product_list(
    rows: Rows,
    catalog: Sequence[ProductConfig],
    config: Optional[WorkbookConfig] = None,
) -> List[Dict[str, object]]:
    """Per-product GMV / Orders / Items sold records from a Product List sheet.

    Every record carries the sheet's reporting end date.  Rows whose ID is
    not in ``catalog`` are dropped.  A sheet without a recognisable header
    row or date range yields no records.
    """
    logger = logging.getLogger(LOGGER_NAME)
    config = config or WorkbookConfig()
    products = _catalog_by_id(catalog)

    header_idx = find_header_row(rows, config.product_list_headers, config.header_scan_rows)
    if header_idx is None:
        logger.warning("Product List header row not found in the first %d rows", config.header_scan_rows)
        return []

    report_date = reporting_end_date(rows)
    if report_date is None:
        logger.warning("Product List first row has no 'YYYY-MM-DD ~ YYYY-MM-DD' date range")
        return []

    headers = [cell_text(c) for c in rows[header_idx]]
    records: List[Dict[str, object]] = []
    for raw in rows[header_idx + 1:]:
        row = _row_dict(headers, raw)
        product_id = cell_text(row.get(config.id_column))
        if not product_id or product_id == "0":
            continue
        product = products.get(product_id)
        if product is None:
            logger.debug("Skipping unknown product id %s", product_id)
            continue
        records.append(
            {
                "product_id": product.id,
                "date": report_date,
                "gmv": cell_to_float(row.get(config.gmv_column)),
                "orders": cell_to_float(row.get(config.orders_column)),
                "items_sold": cell_to_float(row.get(config.items_sold_column)),
            }
        )

    logger.info("Product List %s: %d catalog products", report_date, len(records))
    return records


def extract_traffic_sheet(
    rows: Rows,
    product_id: str,
    config: Optional[WorkbookConfig] = None,
) -> List[Dict[str, object]]:
    """Traffic records (one per content-type row) keyed by each row's End Date."""
    logger = logging.getLogger(LOGGER_NAME)
    config = config or WorkbookConfig()

    header_idx = find_header_row(rows, config.traffic_headers, config.header_scan_rows)
    if header_idx is None:
        logger.warning("Traffic header row not found for product %s, skipping sheet", product_id)
        return []

    headers = [cell_text(c) for c in rows[header_idx]]
    records: List[Dict[str, object]] = []
    for raw in rows[header_idx + 1:]:
        row = _row_dict(headers, raw)
        day = parse_iso_date(row.get(config.end_date_column))
        if day is None:
            continue
        record: Dict[str, object] = {"product_id": str(product_id), "date": day}
        for field_name, column in config.traffic_columns.items():
            record[field_name] = cell_to_float(row.get(column))
        records.append(record)
    return records


def _empty_record(product: ProductConfig, day: str) -> Dict[str, object]:
    record: Dict[str, object] = {
        "date": day,
        "product_id": product.id,
        "product_name": product.name,
        "table": product.table,
    }
    record.update({f: 0.0 for f in BASE_FIELDS})
    return record


def merge_workbook_exports(
    product_list_rows: Optional[Rows],
    traffic_sheets: Mapping[str, Rows],
    catalog: Sequence[ProductConfig],
    config: Optional[WorkbookConfig] = None,
) -> pd.DataFrame:
    """Merge a Product List sheet and per-product traffic sheets.

    Args:
        product_list_rows: Product List cell grid, or None when only traffic
            sheets are imported.
        traffic_sheets: Product ID -> Traffic Breakdown cell grid.
        catalog: Known products; anything else is dropped silently.
        config: Workbook column labels.

    Returns:
        One row per ``(product_id, date)`` with the base fields, the derived
        ratios and the product's name/table, sorted by product name then date.
        Traffic fields accumulate across rows for the same key; GMV, Orders
        and Items sold are assigned.
    """
    logger = logging.getLogger(LOGGER_NAME)
    config = config or WorkbookConfig()
    products = _catalog_by_id(catalog)
    merged: Dict[str, Dict[str, object]] = {}

    def _slot(product: ProductConfig, day: str) -> Dict[str, object]:
        key = f"{product.id}_{day}"
        if key not in merged:
            merged[key] = _empty_record(product, day)
        return merged[key]

    if product_list_rows is not None:
        for rec in extract_product_list(product_list_rows, catalog, config):
            slot = _slot(products[rec["product_id"]], rec["date"])
            for field_name in ("gmv", "orders", "items_sold"):
                slot[field_name] = rec[field_name]

    for product_id, rows in traffic_sheets.items():
        product = products.get(str(product_id))
        if product is None:
            logger.debug("Traffic sheet for unknown product id %s ignored", product_id)
            continue
        for rec in extract_traffic_sheet(rows, product.id, config):
            slot = _slot(product, rec["date"])
            for field_name in config.traffic_columns:
                slot[field_name] = float(slot.get(field_name, 0.0)) + float(rec[field_name])

    if not merged:
        return pd.DataFrame(columns=MERGED_COLUMNS)

    df = compute_derived_ratios(pd.DataFrame(list(merged.values())))
    df = df.sort_values(["product_name", "date"], kind="mergesort").reset_index(drop=True)
    ordered = [c for c in MERGED_COLUMNS if c in df.columns]
    logger.info("Merged %d product-day records", len(df))
    return df[ordered + [c for c in df.columns if c not in ordered]]


def compute_derived_ratios(df: pd.DataFrame) -> pd.DataFrame:
    """Add storefront ratio columns; a zero or missing denominator yields 0."""
    df = df.copy()
    for out, num_col, den_col, scale in RATIO_SPECS:
        num = pd.to_numeric(df.get(num_col, 0.0), errors="coerce")
        den = pd.to_numeric(df.get(den_col, 0.0), errors="coerce")
        num = pd.Series(num, index=df.index).fillna(0.0).astype(float)
        den = pd.Series(den, index=df.index).fillna(0.0).astype(float)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = np.where(den > 0, num / den.where(den > 0, 1.0) * scale, 0.0)
        df[out] = ratio.astype(float)
    return df
