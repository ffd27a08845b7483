"""Canonical metric vocabulary for seller-platform dashboards.

The registry is closed: every canonical name maps 1:1 to a storage column of
the per-product daily tables, so adding a name is a breaking change for the
persistence layer.  Input labels are matched case-insensitively (including a
small set of known variants) and always come back exact-cased.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Sequence


canonical_metrics: Sequence[str] = (
    "GMV",
    "Items Sold",
    "Orders",
    "AOV",
    "Units per Order",
    "Product Impressions",
    "Page Views",
    "Click-through Rate",
    "Avg Visitors",
    "Avg. Customers",
    "Conv. Rate",
    "$ per Visitor",
    "$ per Customer",
    "Subscribers",
)

storage_columns: Dict[str, str] = {
    "GMV": "gmv",
    "Items Sold": "items_sold",
    "Orders": "orders",
    "AOV": "aov",
    "Units per Order": "units_per_order",
    "Product Impressions": "product_impressions",
    "Page Views": "page_views",
    "Click-through Rate": "click_through_rate",
    "Avg Visitors": "visitors",
    "Avg. Customers": "customers",
    "Conv. Rate": "conversion_rate",
    "$ per Visitor": "dollar_per_visitor",
    "$ per Customer": "dollar_per_customer",
    "Subscribers": "subscribers",
}

# Labels seen in manual uploads, stored-table views and platform exports
metric_variants: Dict[str, Sequence[str]] = {
    "GMV": ["Gross Merchandise Value"],
    "Items Sold": ["Items sold", "Units Sold"],
    "Orders": ["Order Count"],
    "AOV": ["Average Order Value"],
    "Units per Order": ["Units/Order"],
    "Product Impressions": ["Impressions"],
    "Page Views": ["Product Page Views"],
    "Click-through Rate": ["CTR"],
    "Avg Visitors": ["Visitors", "Average Visitors"],
    "Avg. Customers": ["Customers", "Avg Customers", "Average Daily Customers"],
    "Conv. Rate": ["Conversion Rate", "Conv Rate"],
    "$ per Visitor": ["Dollar per Visitor", "Revenue per Visitor"],
    "$ per Customer": ["Dollar per Customer", "Revenue per Customer"],
    "Subscribers": ["New Subscribers"],
}

DEFAULT_AVERAGE_KEYWORDS: Sequence[str] = ("rate", "aov", "units per order", "$ per", "avg")

DAILY_COLUMNS: Sequence[str] = tuple(storage_columns[name] for name in canonical_metrics)


def normalize_metric_key(raw: object) -> str:
    """Normalize raw metric text into a comparison token.

    Lowercases, collapses whitespace/underscores/hyphens to single spaces and
    drops dots, so ``"Avg. Customers"``, ``"avg customers"`` and
    ``"AVG_CUSTOMERS"`` compare equal.  ``$`` is kept because it separates
    ``"$ per Visitor"`` from ``"per visitor"`` style labels.
    """
    if raw is None:
        return ""
    s = str(raw).strip().lower()
    s = s.replace(".", "")
    s = re.sub(r"[\s_\-/]+", " ", s)
    return s.strip()


def _build_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for canonical in canonical_metrics:
        candidates = [canonical, storage_columns[canonical], *metric_variants.get(canonical, [])]
        for candidate in candidates:
            lookup.setdefault(normalize_metric_key(candidate), canonical)
    return lookup


_LOOKUP = _build_lookup()


def match_to_canonical(raw_metric: object) -> Optional[str]:
    """Return the canonical name for ``raw_metric`` or ``None`` if it is not in the vocabulary."""
    norm = normalize_metric_key(raw_metric)
    if not norm:
        return None
    return _LOOKUP.get(norm)


def match_exact(raw_metric: object, names: Iterable[str]) -> Optional[str]:
    """Case-insensitive exact match of ``raw_metric`` against ``names``.

    Unlike :func:`match_to_canonical` no variants are considered; the matching
    entry of ``names`` is returned with its own casing.
    """
    text = str(raw_metric or "").strip().casefold()
    if not text:
        return None
    for name in names:
        if name.strip().casefold() == text:
            return name
    return None


def storage_column(name: str) -> str:
    """Return the storage column for a metric name (canonical or variant)."""
    canonical = match_to_canonical(name)
    if canonical is None:
        raise KeyError(f"Not a canonical metric: {name!r}")
    return storage_columns[canonical]


def canonical_for_column(column: str) -> Optional[str]:
    for canonical, col in storage_columns.items():
        if col == column:
            return canonical
    return None


def is_average_metric(name: str, keywords: Iterable[str] = DEFAULT_AVERAGE_KEYWORDS) -> bool:
    """True when a metric is a rate/ratio/average and must be averaged, not summed."""
    lowered = str(name).lower()
    return any(k.lower() in lowered for k in keywords)
