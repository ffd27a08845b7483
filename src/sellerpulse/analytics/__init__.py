from .periods import (
    aggregate_weeks,
    compare_periods,
    summarize_dataset,
    summarize_date_range,
    summarize_history,
    summarize_period,
)

__all__ = [
    "aggregate_weeks",
    "compare_periods",
    "summarize_dataset",
    "summarize_date_range",
    "summarize_history",
    "summarize_period",
]
