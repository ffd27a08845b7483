"""Metric extraction from loosely structured sheet CSV exports.

The published sheets are authored by hand, so nothing about their shape is
guaranteed beyond a row of ``D-Mon`` date tokens somewhere near the top.
:func:`locate_header` finds that row; :func:`extract_metric_series` walks the
rows below it through the rule table in :mod:`sellerpulse.extraction.rules`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from ..common.config_validator import ExtractionConfig
from ..models import DashboardDataset, MetricSeries
from .csv_line import parse_csv_line, split_lines
from .rules import ROW_RULES, RowContext, RowRule, RowView, RuleTrace, ScanState, classify_row
from .values import DATE_TOKEN_PATTERN, cell_to_float, parse_date_token, safe_to_float

LOGGER_NAME = "sellerpulse.extraction"


@dataclass(frozen=True)
class HeaderRow:
    line_index: int
    columns: Tuple[int, ...]
    dates: Tuple[date, ...]


def locate_header(rows: Sequence[Sequence[str]], config: ExtractionConfig) -> Optional[HeaderRow]:
    """Find the date header among the first ``config.header_scan_rows`` rows.

    A row qualifies when it has more than ``min_header_cells`` cells and at
    least ``min_date_cells`` of them look like ``D-Mon`` tokens.  Repeated
    dates keep their first column, and columns are ordered by date so every
    series built from the header is ascending.
    """
    for idx, cells in enumerate(rows[: config.header_scan_rows]):
        if len(cells) <= config.min_header_cells:
            continue
        if sum(1 for c in cells if DATE_TOKEN_PATTERN.search(c)) < config.min_date_cells:
            continue

        by_date: Dict[date, int] = {}
        for col, cell in enumerate(cells):
            parsed = parse_date_token(cell, config.season)
            if parsed is not None and parsed not in by_date:
                by_date[parsed] = col
        if not by_date:
            continue
        ordered = sorted(by_date.items())
        return HeaderRow(
            line_index=idx,
            columns=tuple(col for _, col in ordered),
            dates=tuple(d for d, _ in ordered),
        )
    return None


def build_row_view(cells: Sequence[str], header: HeaderRow) -> RowView:
    date_columns = set(header.columns)
    label_cells = [c for i, c in enumerate(cells) if i not in date_columns][:2]
    raw = [cells[col] if col < len(cells) else "" for col in header.columns]
    return RowView(
        cells=tuple(cells),
        labels=tuple(c for c in label_cells if c),
        values=tuple(cell_to_float(c) for c in raw),
        parsed_cells=sum(1 for c in raw if safe_to_float(c) is not None),
    )


def extract_metric_series(
    csv_text: str,
    filter_pack: Optional[str] = None,
    config: Optional[ExtractionConfig] = None,
    source_name: str = "",
    rules: Sequence[RowRule] = ROW_RULES,
    trace: Optional[RuleTrace] = None,
) -> DashboardDataset:
    """Extract canonical metric series from a sheet CSV export.

    Args:
        csv_text: Raw export text.
        filter_pack: Pack-size token (e.g. ``"2 Pack"``) selecting one
            variant's rows under the GMV / Items Sold categories.
        config: Extraction heuristics; defaults apply when omitted.
        source_name: Label stored on the returned dataset.
        rules: Row rule table, mostly overridden in tests.
        trace: Optional collector of which rule handled each row.

    Returns:
        A dataset whose ``dates`` are the header dates and whose metrics are
        aligned to them. When no header row is found the dataset is empty.
    """
    logger = logging.getLogger(LOGGER_NAME)
    config = config or ExtractionConfig()
    rows = [parse_csv_line(line) for line in split_lines(csv_text)]

    header = locate_header(rows, config)
    if header is None:
        logger.warning(
            "No date header row within the first %d lines of %s", config.header_scan_rows, source_name or "export"
        )
        return DashboardDataset(source_name=source_name)

    logger.debug("Header row at line %d with %d dates", header.line_index, len(header.dates))

    state = ScanState.idle()
    emitted: List[MetricSeries] = []
    captured: set = set()

    for line_index in range(header.line_index + 1, len(rows)):
        row = build_row_view(rows[line_index], header)
        ctx = RowContext(
            row=row,
            state=state,
            captured=frozenset(captured),
            config=config,
            filter_pack=filter_pack,
        )
        rule, outcome = classify_row(ctx, rules)
        if trace is not None:
            trace.add(line_index, rule, outcome)

        if outcome.emit and outcome.emit not in captured:
            captured.add(outcome.emit)
            emitted.append(MetricSeries.from_pairs(outcome.emit, list(zip(header.dates, row.values))))
            logger.debug("Line %d -> %s (%s)", line_index, outcome.emit, rule.name if rule else "unmatched")
        state = outcome.state

    if state.is_pending:
        logger.info("Category %s found no data row%s", state.category, f" for {filter_pack}" if filter_pack else "")

    logger.info("Extracted %d metrics over %d dates from %s", len(emitted), len(header.dates), source_name or "export")
    return DashboardDataset(source_name=source_name, metrics=tuple(emitted), dates=header.dates)
