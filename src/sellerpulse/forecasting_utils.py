"""Short-horizon forecasting helpers ("Recent-Weighted Linear Regression").

The forecaster fits a weighted least-squares line to the most recent two
weeks of a daily series, with exponentially increasing weights so the latest
days dominate, and projects it forward with an optional dampening and a floor
relative to the recent mean.  It is deliberately transparent rather than
statistically rigorous.
"""
from __future__ import annotations

import json
import logging
import math
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .common.config_validator import ForecastConfig
from .errors import InsufficientDataError
from .models import DatedForecast, ForecastResult


LOGGER_NAME = "sellerpulse.forecasting"

METHOD_NAME = "Recent-Weighted Linear Regression"
ALGORITHM = "Exponentially weighted trend (last 14 days heavily favored)"


def recency_weights(n: int) -> np.ndarray:
    """``2 ** (i / n)`` for i = 0..n-1 (oldest first), normalised to sum to 1."""
    raw = np.power(2.0, np.arange(n, dtype=float) / float(n))
    return raw / raw.sum()


def weighted_linear_fit(values: Sequence[float], weights: np.ndarray) -> tuple:
    """Weighted least squares of ``values`` on their position; returns (slope, intercept).

    A degenerate x-variance gives a flat line through the weighted mean.
    """
    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)
    mean_x = float(np.sum(weights * x))
    mean_y = float(np.sum(weights * y))
    var_x = float(np.sum(weights * x * x)) - mean_x * mean_x
    cov_xy = float(np.sum(weights * x * y)) - mean_x * mean_y
    slope = cov_xy / var_x if var_x != 0 else 0.0
    intercept = mean_y - slope * mean_x
    return slope, intercept


def trailing_moving_average(values: Sequence[float], window: int) -> List[float]:
    """Trailing simple moving average; the first ``window - 1`` points pass through."""
    s = pd.Series(values, dtype=float)
    smoothed = s.rolling(window=window, min_periods=window).mean()
    return smoothed.fillna(s).tolist()


def dampening_factor(step: int, horizon: int, config: ForecastConfig) -> float:
    """Linear attenuation from ~1 at step 1 to ``dampening_floor`` at the last step.

    Only horizons longer than ``dampening_after_days`` are dampened.
    """
    if horizon <= config.dampening_after_days:
        return 1.0
    floor = config.dampening_floor
    return max(floor, 1.0 - (step / horizon) * (1.0 - floor))


def confidence_score(actuals: Sequence[float], slope: float, intercept: float) -> int:
    """``round(clamp((1 - mean relative deviation) * 100, 0, 100))`` over the lookback.

    Actuals of exactly zero contribute no deviation.
    """
    y = np.asarray(actuals, dtype=float)
    predicted = intercept + slope * np.arange(len(y), dtype=float)
    nonzero = y != 0
    deviations = np.zeros_like(y)
    deviations[nonzero] = np.abs(y[nonzero] - predicted[nonzero]) / np.abs(y[nonzero])
    avg_deviation = float(deviations.mean()) if len(y) else 0.0
    score = min(100.0, max(0.0, (1.0 - avg_deviation) * 100.0))
    # Half-up rounding, not banker's
    return int(math.floor(score + 0.5))


def recent_weighted_forecast(
    values: Sequence[float],
    horizon: int,
    config: Optional[ForecastConfig] = None,
) -> ForecastResult:
    """Project ``values`` (oldest first) ``horizon`` days ahead.

    Raises:
        InsufficientDataError: fewer than ``config.min_points`` values.
        ValueError: negative horizon or non-finite input.
    """
    config = config or ForecastConfig()
    data = [float(v) for v in values]
    if len(data) < config.min_points:
        raise InsufficientDataError(
            f"Need at least {config.min_points} data points for forecasting (got {len(data)})"
        )
    if horizon < 0:
        raise ValueError(f"Forecast horizon must be non-negative (got {horizon})")
    if not all(math.isfinite(v) for v in data):
        raise ValueError("Forecast input contains NaN or infinite values")

    lookback = min(config.max_lookback, len(data))
    recent = data[-lookback:]
    slope, intercept = weighted_linear_fit(recent, recency_weights(lookback))

    recent_avg = float(np.mean(recent))
    floor = recent_avg * config.floor_ratio
    last_index = lookback - 1
    forecasts = []
    for step in range(1, horizon + 1):
        raw = intercept + slope * (last_index + step)
        forecasts.append(max(floor, raw * dampening_factor(step, horizon, config)))

    return ForecastResult(
        smoothed_historical=tuple(trailing_moving_average(data, config.smoothing_window)),
        forecast_values=tuple(float(v) for v in forecasts),
        slope=float(slope),
        intercept=float(intercept),
        confidence_score=confidence_score(recent, slope, intercept),
        recent_average=recent_avg,
        lookback_days=lookback,
    )


def build_forecast(
    dates: Sequence[object],
    values: Sequence[float],
    horizon: int,
    config: Optional[ForecastConfig] = None,
) -> DatedForecast:
    """Forecast a dated daily series and attach calendar dates to the projection.

    The most recent day is usually incomplete (the platform syncs late), so
    with ``drop_latest`` it is removed first; the series must then have at
    least ``min_rows_with_latest`` rows.  Forecast dates continue daily from
    the last kept date.
    """
    logger = logging.getLogger(LOGGER_NAME)
    config = config or ForecastConfig()
    if len(dates) != len(values):
        raise ValueError(f"dates and values differ in length ({len(dates)} vs {len(values)})")

    day_list = [pd.Timestamp(d).date() for d in dates]
    value_list = [0.0 if pd.isna(v) else float(v) for v in values]

    if config.drop_latest:
        if len(value_list) < config.min_rows_with_latest:
            raise InsufficientDataError(
                f"Need at least {config.min_rows_with_latest} days of data for forecasting (got {len(value_list)})"
            )
        day_list = day_list[:-1]
        value_list = value_list[:-1]

    result = recent_weighted_forecast(value_list, horizon, config)
    last_day: date = day_list[-1]
    future = tuple(last_day + timedelta(days=i) for i in range(1, horizon + 1))

    metadata: Dict[str, object] = {
        "method": METHOD_NAME,
        "algorithm": ALGORITHM,
        "trend": result.slope,
        "confidence_score": result.confidence_score,
        "recent_average": result.recent_average,
        "data_points": len(value_list),
        "lookback_days": result.lookback_days,
        "horizon": int(horizon),
        "last_observed_date": last_day.isoformat(),
    }
    logger.info(
        "Forecast %d days from %s: slope=%.4f confidence=%d",
        horizon,
        last_day.isoformat(),
        result.slope,
        result.confidence_score,
    )
    return DatedForecast(
        historical_dates=tuple(day_list),
        historical_values=tuple(value_list),
        forecast_dates=future,
        result=result,
        metadata=metadata,
    )


def forecast_frame(forecast: DatedForecast) -> pd.DataFrame:
    """Tidy frame of history and projection: kind, date, value, smoothed."""
    historical = pd.DataFrame(
        {
            "kind": "historical",
            "date": pd.to_datetime(list(forecast.historical_dates)),
            "value": list(forecast.historical_values),
            "smoothed": list(forecast.result.smoothed_historical),
        }
    )
    projected = pd.DataFrame(
        {
            "kind": "forecast",
            "date": pd.to_datetime(list(forecast.forecast_dates)),
            "value": list(forecast.result.forecast_values),
            "smoothed": np.nan,
        }
    )
    frames = [f for f in (historical, projected) if not f.empty]
    if not frames:
        return pd.DataFrame(columns=["kind", "date", "value", "smoothed"])
    return pd.concat(frames, ignore_index=True)[["kind", "date", "value", "smoothed"]]


def persist_forecast_outputs(df: pd.DataFrame, output_dir: Path, stem: str) -> Path:
    """Write a forecast frame to ``output_dir/<stem>_forecast.csv``."""

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"{stem}_forecast.csv"
    df_to_save = df.copy()
    df_to_save["date"] = pd.to_datetime(df_to_save["date"]).dt.strftime("%Y-%m-%d")
    df_to_save.to_csv(csv_path, index=False)
    return csv_path


def write_metadata(metadata: Dict[str, object], output_dir: Path, stem: str) -> Path:
    """Persist run metadata next to the forecast CSV."""

    output_dir.mkdir(parents=True, exist_ok=True)
    metadata_path = output_dir / f"{stem}_forecast_metadata.json"
    with open(metadata_path, "w", encoding="utf-8") as stream:
        json.dump(metadata, stream, indent=2, default=str)
    return metadata_path
