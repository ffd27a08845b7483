"""Current-vs-previous period comparisons for dashboard metrics.

Three call sites compare periods with slightly different windows:

* :func:`summarize_history` - the headline cards: half of the available
  history (at least a week) against the half before it, 1% flat band.
* :func:`summarize_period` - the chart's period picker: ``N`` days or weeks
  ending at the latest or at a chosen date, 5% flat band.
* :func:`summarize_date_range` - calendar windows around an end date.

All of them build on :func:`compare_periods` and are pure: the same input
always yields an equal :class:`~sellerpulse.models.PeriodSummary`.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..common.config_validator import AggregationConfig
from ..errors import InsufficientDataError
from ..metric_registry_utils import is_average_metric
from ..models import DashboardDataset, MetricPoint, MetricSeries, PeriodStats, PeriodSummary, WeekBucket

LOGGER_NAME = "sellerpulse.aggregation"

DateLike = Union[date, str, pd.Timestamp]


def _coerce_date(value: Optional[DateLike]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(str(value)).date()


def calculate_median(values: Sequence[float]) -> float:
    """Median of ``values``; the two middle elements are averaged for even lengths. Empty -> 0."""
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def classify_trend(change: float, change_percent: float, threshold_pct: float) -> str:
    if change == 0 or abs(change_percent) < threshold_pct:
        return "flat"
    return "up" if change > 0 else "down"


def aggregate_weeks(points: Sequence[MetricPoint], use_average: bool, week_length: int = 7) -> List[WeekBucket]:
    """Group consecutive entries into chunks of ``week_length`` (not calendar weeks).

    Each bucket sums, or averages when ``use_average``, its chunk and keeps the
    chunk's dates.  A trailing partial chunk becomes a shorter bucket.
    """
    buckets: List[WeekBucket] = []
    for start in range(0, len(points), week_length):
        chunk = points[start:start + week_length]
        total = float(sum(p.value for p in chunk))
        buckets.append(
            WeekBucket(
                week=start // week_length + 1,
                value=total / len(chunk) if use_average else total,
                dates=tuple(p.date for p in chunk),
            )
        )
    return buckets


def _stats(points: Sequence[MetricPoint], use_average: bool, week_length: Optional[int] = None) -> PeriodStats:
    total = float(sum(p.value for p in points))
    average = total / len(points) if points else 0.0
    weeks = tuple(aggregate_weeks(points, use_average, week_length)) if week_length else ()
    return PeriodStats(total=total, average=average, daily_values=tuple(points), weeks=weeks)


def _summarize(
    series: MetricSeries,
    current: Sequence[MetricPoint],
    previous: Sequence[MetricPoint],
    threshold_pct: float,
    average_keywords: Sequence[str],
    week_length: Optional[int] = None,
) -> PeriodSummary:
    use_average = is_average_metric(series.name, average_keywords)
    cur = _stats(current, use_average, week_length)
    prev = _stats(previous, use_average, week_length)

    current_value = cur.average if use_average else cur.total
    previous_value = prev.average if use_average else prev.total
    change = current_value - previous_value
    change_percent = (change / previous_value) * 100.0 if previous_value != 0 else 0.0
    median = calculate_median(series.amounts)

    return PeriodSummary(
        name=series.name,
        current_period=cur,
        previous_period=prev,
        change=change,
        change_percent=change_percent,
        trend=classify_trend(change, change_percent, threshold_pct),
        median=median,
        above_median=bool(cur.average >= median),
        use_average=use_average,
    )


def _require_data(series: MetricSeries, days: int) -> None:
    if days < 1:
        raise InsufficientDataError(f"Period length must be at least one day for {series.name!r} (got {days})")
    if len(series) == 0:
        raise InsufficientDataError(f"No values to summarise for {series.name!r}")


def compare_periods(
    series: MetricSeries,
    days: int,
    end_date: Optional[DateLike] = None,
    trend_threshold_pct: float = 5.0,
    average_keywords: Optional[Sequence[str]] = None,
    week_length: Optional[int] = None,
) -> PeriodSummary:
    """Compare the ``days`` entries ending at ``end_date`` with the ``days`` before them.

    Without ``end_date``, or when it is unparseable or not one of the
    series' dates, the current period is the last ``days`` entries.  Windows
    are positional, so gaps in the calendar are not filled.

    Raises:
        InsufficientDataError: the series is empty or ``days`` < 1.
    """
    _require_data(series, days)
    points = series.values
    n = len(points)

    end_idx = n - 1
    logger = logging.getLogger(LOGGER_NAME)
    try:
        anchor = _coerce_date(end_date)
    except ValueError:
        logger.debug("End date %r is not a date, using latest %d entries of %s", end_date, days, series.name)
        anchor = None
    if anchor is not None:
        found = next((i for i, p in enumerate(points) if p.date == anchor), None)
        if found is None:
            logger.debug("End date %s not in %s, using latest %d entries", anchor, series.name, days)
        else:
            end_idx = found

    start = max(0, end_idx - days + 1)
    prev_start = max(0, start - days)
    keywords = average_keywords if average_keywords is not None else AggregationConfig().average_keywords
    return _summarize(
        series,
        points[start:end_idx + 1],
        points[prev_start:start],
        trend_threshold_pct,
        keywords,
        week_length,
    )


def summarize_history(series: MetricSeries, config: Optional[AggregationConfig] = None) -> PeriodSummary:
    """Whole-history comparison: the latest half (at least a week) vs the half before it."""
    config = config or AggregationConfig()
    days = max(config.min_history_period_days, len(series) // 2)
    return compare_periods(
        series,
        days,
        trend_threshold_pct=config.history_trend_threshold_pct,
        average_keywords=config.average_keywords,
    )


def summarize_period(
    series: MetricSeries,
    periods: int,
    end_date: Optional[DateLike] = None,
    granularity: str = "day",
    config: Optional[AggregationConfig] = None,
) -> PeriodSummary:
    """Chart period picker: ``periods`` days, or weeks, ending at ``end_date``.

    With ``granularity="week"`` the window is ``periods * week_length`` entries
    and both periods carry per-week buckets.
    """
    config = config or AggregationConfig()
    if granularity not in ("day", "week"):
        raise ValueError(f"granularity must be 'day' or 'week', got {granularity!r}")
    weekly = granularity == "week"
    days = periods * config.week_length if weekly else periods
    return compare_periods(
        series,
        days,
        end_date=end_date,
        trend_threshold_pct=config.period_trend_threshold_pct,
        average_keywords=config.average_keywords,
        week_length=config.week_length if weekly else None,
    )


def summarize_date_range(
    series: MetricSeries,
    end_date: DateLike,
    days: int = 7,
    config: Optional[AggregationConfig] = None,
) -> PeriodSummary:
    """Calendar-window comparison.

    The current period holds the series' dates in ``(end - days, end]``, the
    previous one those in ``(end - 2*days, end - days]``, so neither holds
    more than ``days`` entries.  Missing calendar days simply shorten a period.
    """
    config = config or AggregationConfig()
    _require_data(series, days)
    end = _coerce_date(end_date)
    start = end - timedelta(days=days)
    prev_start = start - timedelta(days=days)
    current = [p for p in series.values if start < p.date <= end]
    previous = [p for p in series.values if prev_start < p.date <= start]
    return _summarize(
        series,
        current,
        previous,
        config.history_trend_threshold_pct,
        config.average_keywords,
    )


def summarize_dataset(
    dataset: DashboardDataset,
    summarize: Callable[..., PeriodSummary] = summarize_history,
    **kwargs,
) -> List[PeriodSummary]:
    """Apply ``summarize`` to every non-empty metric of ``dataset``."""
    logger = logging.getLogger(LOGGER_NAME)
    summaries: List[PeriodSummary] = []
    for series in dataset.metrics:
        if len(series) == 0:
            logger.debug("Skipping empty series %s", series.name)
            continue
        summaries.append(summarize(series, **kwargs))
    return summaries


def summaries_to_frame(summaries: Sequence[PeriodSummary]) -> pd.DataFrame:
    """Flatten summaries into one row per metric for CSV output."""
    columns = [
        "metric",
        "current_value",
        "previous_value",
        "change",
        "change_percent",
        "trend",
        "median",
        "above_median",
        "use_average",
        "current_days",
        "previous_days",
    ]
    rows = [
        {
            "metric": s.name,
            "current_value": s.current_value,
            "previous_value": s.previous_value,
            "change": s.change,
            "change_percent": s.change_percent,
            "trend": s.trend,
            "median": s.median,
            "above_median": s.above_median,
            "use_average": s.use_average,
            "current_days": len(s.current_period.daily_values),
            "previous_days": len(s.previous_period.daily_values),
        }
        for s in summaries
    ]
    return pd.DataFrame(rows, columns=columns)
