"""Cell-level coercion helpers shared by the sheet and workbook extractors."""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Optional

import pandas as pd

from ..common.config_validator import MONTH_ABBREVIATIONS, SeasonPolicy

DATE_TOKEN_PATTERN = re.compile(r"(\d{1,2})-([A-Za-z]{3})")
ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
_STRIP_CHARS = str.maketrans("", "", '",$%')


def safe_to_float(val: object) -> Optional[float]:
    """Convert a raw cell to float, or ``None`` when it does not parse.

    Strings have quotes, thousands separators, ``$`` and ``%`` removed first
    (percent values are kept as-is, ``"12.5%"`` -> ``12.5``).  Non-finite
    results count as unparseable.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        num = float(val)
    else:
        text = str(val).translate(_STRIP_CHARS).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def cell_to_float(val: object) -> float:
    """Like :func:`safe_to_float` but unparseable cells become ``0.0``."""
    num = safe_to_float(val)
    return 0.0 if num is None else num


def parse_date_token(text: object, season: SeasonPolicy) -> Optional[date]:
    """Resolve a ``D-Mon`` header token such as ``19-Jan`` to a calendar date.

    The year comes from ``season`` because the export omits it.  Returns
    ``None`` for cells that are not date tokens or name an impossible day.
    """
    match = DATE_TOKEN_PATTERN.search(str(text or ""))
    if not match:
        return None
    month = MONTH_ABBREVIATIONS.get(match.group(2).lower())
    if month is None:
        return None
    try:
        return date(season.year_for(month), month, int(match.group(1)))
    except ValueError:
        return None


def parse_iso_date(val: object) -> Optional[str]:
    """Return ``YYYY-MM-DD`` for a workbook date cell (text or datetime), else None."""
    if val is None:
        return None
    if isinstance(val, (datetime, pd.Timestamp)):
        if pd.isna(val):
            return None
        return val.strftime("%Y-%m-%d")
    if isinstance(val, date):
        return val.isoformat()
    match = ISO_DATE_PATTERN.search(str(val))
    return match.group(0) if match else None


def cell_text(val: object) -> str:
    """Trimmed string form of a workbook cell; blanks and NaN become ``""``."""
    if val is None:
        return ""
    if isinstance(val, float):
        if math.isnan(val):
            return ""
        if val.is_integer():
            # Excel hands numeric IDs back as floats
            return str(int(val))
    return str(val).strip()
