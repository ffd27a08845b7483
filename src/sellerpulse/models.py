"""Value objects exchanged between the extractors, the aggregator and the forecaster."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple

import pandas as pd


@dataclass(frozen=True)
class MetricPoint:
    date: date
    value: float


@dataclass(frozen=True)
class MetricSeries:
    """One canonical metric as an ascending sequence of dated values."""

    name: str
    values: Tuple[MetricPoint, ...] = ()

    @classmethod
    def from_pairs(cls, name: str, pairs: Sequence[Tuple[date, float]]) -> "MetricSeries":
        return cls(name=name, values=tuple(MetricPoint(d, float(v)) for d, v in pairs))

    @property
    def dates(self) -> List[date]:
        return [p.date for p in self.values]

    @property
    def amounts(self) -> List[float]:
        return [p.value for p in self.values]

    def __len__(self) -> int:
        return len(self.values)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "metric": [self.name] * len(self.values),
                "date": pd.to_datetime(self.dates),
                "value": self.amounts,
            },
            columns=["metric", "date", "value"],
        )


@dataclass(frozen=True)
class DashboardDataset:
    """Metrics extracted from one source (a sheet, an upload or a stored table)."""

    source_name: str
    metrics: Tuple[MetricSeries, ...] = ()
    dates: Tuple[date, ...] = ()

    def get(self, name: str) -> Optional[MetricSeries]:
        for series in self.metrics:
            if series.name == name:
                return series
        return None

    @property
    def metric_names(self) -> List[str]:
        return [m.name for m in self.metrics]

    @property
    def is_empty(self) -> bool:
        return not self.metrics

    def to_frame(self) -> pd.DataFrame:
        """Return the dataset in long format: metric, date, value."""
        if not self.metrics:
            return pd.DataFrame(columns=["metric", "date", "value"])
        return pd.concat([m.to_frame() for m in self.metrics], ignore_index=True)


@dataclass(frozen=True)
class WeekBucket:
    week: int
    value: float
    dates: Tuple[date, ...]


@dataclass(frozen=True)
class PeriodStats:
    total: float
    average: float
    daily_values: Tuple[MetricPoint, ...]
    weeks: Tuple[WeekBucket, ...] = ()


@dataclass(frozen=True)
class PeriodSummary:
    """Current-vs-previous comparison for a single metric."""

    name: str
    current_period: PeriodStats
    previous_period: PeriodStats
    change: float
    change_percent: float
    trend: str
    median: float
    above_median: bool
    use_average: bool

    @property
    def current_value(self) -> float:
        return self.current_period.average if self.use_average else self.current_period.total

    @property
    def previous_value(self) -> float:
        return self.previous_period.average if self.use_average else self.previous_period.total


@dataclass(frozen=True)
class ForecastResult:
    smoothed_historical: Tuple[float, ...]
    forecast_values: Tuple[float, ...]
    slope: float
    intercept: float
    confidence_score: int
    recent_average: float
    lookback_days: int


@dataclass(frozen=True)
class DatedForecast:
    """Forecast output aligned to calendar dates, ready for charting."""

    historical_dates: Tuple[date, ...]
    historical_values: Tuple[float, ...]
    forecast_dates: Tuple[date, ...]
    result: ForecastResult
    metadata: dict = field(default_factory=dict)
