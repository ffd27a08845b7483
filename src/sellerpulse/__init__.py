"""Seller-platform dashboard analytics: sheet/workbook extraction, period summaries and forecasts."""

from .errors import InsufficientDataError, SellerPulseError, UnknownProductError
from .models import DashboardDataset, ForecastResult, MetricPoint, MetricSeries, PeriodSummary

__version__ = "0.3.0"

__all__ = [
    "DashboardDataset",
    "ForecastResult",
    "InsufficientDataError",
    "MetricPoint",
    "MetricSeries",
    "PeriodSummary",
    "SellerPulseError",
    "UnknownProductError",
    "__version__",
]
