from datetime import date, timedelta

import numpy as np
import pytest

from sellerpulse.common.config_validator import ForecastConfig
from sellerpulse.errors import InsufficientDataError
from sellerpulse.forecasting_utils import (
    METHOD_NAME,
    build_forecast,
    confidence_score,
    dampening_factor,
    forecast_frame,
    recency_weights,
    recent_weighted_forecast,
    trailing_moving_average,
    weighted_linear_fit,
)

SAMPLE = [10, 12, 11, 13, 14, 16, 15]


def test_minimum_sample_forecasts_requested_horizon():
    result = recent_weighted_forecast(SAMPLE, 3)
    assert result.lookback_days == 7
    assert len(result.forecast_values) == 3
    assert result.slope > 0
    assert result.recent_average == pytest.approx(np.mean(SAMPLE))
    assert all(v >= 0.7 * result.recent_average for v in result.forecast_values)
    assert isinstance(result.confidence_score, int)
    assert 0 <= result.confidence_score <= 100


def test_fewer_than_minimum_points_raises():
    with pytest.raises(InsufficientDataError):
        recent_weighted_forecast(SAMPLE[:6], 3)


def test_invalid_inputs_raise_value_error():
    with pytest.raises(ValueError):
        recent_weighted_forecast(SAMPLE, -1)
    with pytest.raises(ValueError):
        recent_weighted_forecast(SAMPLE[:-1] + [float("nan")], 3)


def test_lookback_caps_at_fourteen_points():
    values = list(range(1, 21))
    result = recent_weighted_forecast(values, 5)
    assert result.lookback_days == 14
    assert result.recent_average == pytest.approx(np.mean(values[-14:]))
    assert len(result.smoothed_historical) == len(values)


def test_perfect_line_is_recovered():
    values = [10 + 2 * x for x in range(14)]
    result = recent_weighted_forecast(values, 3)
    assert result.slope == pytest.approx(2.0)
    assert result.intercept == pytest.approx(10.0)
    assert result.confidence_score == 100
    assert result.forecast_values[0] == pytest.approx(10 + 2 * 14)
    assert result.forecast_values[2] == pytest.approx(10 + 2 * 16)


def test_constant_series_has_flat_trend():
    result = recent_weighted_forecast([50.0] * 10, 4)
    assert result.slope == pytest.approx(0.0, abs=1e-9)
    assert result.confidence_score == 100
    assert result.forecast_values == pytest.approx((50.0,) * 4)


def test_declining_series_is_floored():
    values = [140 - 10 * i for i in range(14)]
    result = recent_weighted_forecast(values, 5)
    floor = 0.7 * np.mean(values)
    assert result.forecast_values == pytest.approx((floor,) * 5)


def test_long_horizons_are_dampened():
    values = [10 + 2 * x for x in range(14)]
    result = recent_weighted_forecast(values, 30)
    raw_last = 10 + 2 * (13 + 30)
    assert result.forecast_values[-1] == pytest.approx(raw_last * 0.85)
    assert result.forecast_values[0] == pytest.approx((10 + 2 * 14) * (1 - 0.15 / 30))


def test_dampening_factor_bounds():
    config = ForecastConfig()
    assert dampening_factor(5, 21, config) == 1.0
    assert dampening_factor(1, 30, config) == pytest.approx(0.995)
    assert dampening_factor(30, 30, config) == pytest.approx(0.85)


def test_recency_weights_normalised_and_increasing():
    weights = recency_weights(14)
    assert weights.sum() == pytest.approx(1.0)
    assert np.all(np.diff(weights) > 0)
    assert weights[-1] / weights[0] == pytest.approx(2 ** (13 / 14))


def test_degenerate_fit_has_zero_slope():
    slope, intercept = weighted_linear_fit([5.0], np.array([1.0]))
    assert slope == 0.0
    assert intercept == 5.0


def test_trailing_moving_average_passes_first_points_through():
    smoothed = trailing_moving_average([3, 6, 9, 12], 3)
    assert smoothed == pytest.approx([3, 6, 6, 9])


def test_confidence_with_zero_actuals_stays_in_range():
    score = confidence_score([0, 5, 0, 5, 0, 5, 0], 0.0, 2.5)
    assert isinstance(score, int)
    assert 0 <= score <= 100
    result = recent_weighted_forecast([0, 5, 0, 5, 0, 5, 0], 2)
    assert 0 <= result.confidence_score <= 100


def test_confidence_clamps_at_zero():
    assert confidence_score([1, 1, 1], 0.0, 10.0) == 0


def test_build_forecast_drops_latest_day_and_dates_projection():
    start = date(2026, 1, 1)
    dates = [start + timedelta(days=i) for i in range(10)]
    values = [100 + i for i in range(9)] + [0]
    forecast = build_forecast(dates, values, 4)
    assert forecast.historical_dates[-1] == date(2026, 1, 9)
    assert len(forecast.historical_values) == 9
    assert forecast.forecast_dates == tuple(date(2026, 1, 9) + timedelta(days=i) for i in range(1, 5))
    assert forecast.metadata["method"] == METHOD_NAME
    assert forecast.metadata["data_points"] == 9
    assert forecast.metadata["lookback_days"] == 9
    assert forecast.metadata["last_observed_date"] == "2026-01-09"


def test_build_forecast_requires_eight_rows_when_dropping_latest():
    dates = [f"2026-01-0{i}" for i in range(1, 8)]
    with pytest.raises(InsufficientDataError):
        build_forecast(dates, SAMPLE, 3)
    kept = build_forecast(dates, SAMPLE, 3, ForecastConfig(drop_latest=False))
    assert len(kept.result.forecast_values) == 3


def test_build_forecast_length_mismatch():
    with pytest.raises(ValueError):
        build_forecast(["2026-01-01"], [1.0, 2.0], 3)


def test_forecast_frame_layout():
    dates = [date(2026, 1, 1) + timedelta(days=i) for i in range(8)]
    forecast = build_forecast(dates, [5, 6, 7, 8, 9, 10, 11, 0], 3)
    frame = forecast_frame(forecast)
    assert list(frame.columns) == ["kind", "date", "value", "smoothed"]
    assert (frame["kind"] == "historical").sum() == 7
    assert (frame["kind"] == "forecast").sum() == 3
    assert frame.loc[frame["kind"] == "forecast", "smoothed"].isna().all()
    assert frame["date"].is_monotonic_increasing
