"""Configuration validation models using Pydantic."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from ..metric_registry_utils import DEFAULT_AVERAGE_KEYWORDS

MONTH_ABBREVIATIONS: Dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


class PathsConfig(BaseModel):
    logs_dir: str = Field("logs", description="Directory for log files")
    output_dir: str = Field("data/processed", description="Directory for pipeline outputs")


class LoggingConfig(BaseModel):
    level: str = Field("INFO", description="Logging level name")
    file_name: str = Field("sellerpulse.log", description="Log file written under paths.logs_dir")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        level = str(v).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level: {v}")
        return level


class SeasonPolicy(BaseModel):
    """Year assignment for ``D-Mon`` header tokens, which carry no year."""

    default_year: int = Field(2026, description="Year used for months not listed in month_years")
    month_years: Dict[str, int] = Field(
        default_factory=lambda: {"Dec": 2025},
        description="Month abbreviation -> year overrides",
    )

    @field_validator("month_years")
    @classmethod
    def validate_months(cls, v):
        for month in v:
            if str(month).strip().lower()[:3] not in MONTH_ABBREVIATIONS:
                raise ValueError(f"Unknown month abbreviation in season policy: {month}")
        return v

    def year_for(self, month: int) -> int:
        for abbr, year in self.month_years.items():
            if MONTH_ABBREVIATIONS[abbr.strip().lower()[:3]] == month:
                return int(year)
        return int(self.default_year)


class ExtractionConfig(BaseModel):
    """Heuristics for locating and classifying rows of a sheet CSV export."""

    header_scan_rows: int = Field(15, ge=1)
    min_header_cells: int = Field(10, ge=0, description="Header row needs strictly more cells than this")
    min_date_cells: int = Field(6, ge=1)
    season: SeasonPolicy = Field(default_factory=SeasonPolicy)
    category_labels: List[str] = Field(default_factory=lambda: ["Items Sold", "GMV"])
    skip_labels: List[str] = Field(default_factory=lambda: ["Seller SKU"])
    reserved_tokens: List[str] = Field(default_factory=lambda: ["Pack", "SKU", "Items Sold", "GMV", "Total"])
    pack_token: str = "Pack"
    general_metrics: List[str] = Field(
        default_factory=lambda: [
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
        ]
    )

    @model_validator(mode="after")
    def validate_labels(self):
        overlap = {c.casefold() for c in self.category_labels} & {g.casefold() for g in self.general_metrics}
        if overlap:
            raise ValueError(f"Labels cannot be both category markers and general metrics: {sorted(overlap)}")
        return self


class WorkbookConfig(BaseModel):
    """Column labels of the platform's Product List and Traffic Breakdown exports."""

    header_scan_rows: int = Field(5, ge=1)
    product_list_headers: List[str] = Field(default_factory=lambda: ["ID", "Product", "GMV"])
    traffic_headers: List[str] = Field(default_factory=lambda: ["Start Date", "End Date"])
    id_column: str = "ID"
    gmv_column: str = "GMV"
    orders_column: str = "Orders"
    items_sold_column: str = "Items sold"
    end_date_column: str = "End Date"
    traffic_columns: Dict[str, str] = Field(
        default_factory=lambda: {
            "product_impressions": "Product Impressions",
            "page_views": "Page Views",
            "visitors": "Average Visitors",
            "customers": "Average Daily Customers",
        },
        description="storage column -> traffic sheet column",
    )


class AggregationConfig(BaseModel):
    history_trend_threshold_pct: float = Field(1.0, ge=0, description="Flat band for whole-history comparisons")
    period_trend_threshold_pct: float = Field(5.0, ge=0, description="Flat band for re-selected periods")
    min_history_period_days: int = Field(7, ge=1)
    week_length: int = Field(7, ge=1)
    average_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_AVERAGE_KEYWORDS))


class ForecastConfig(BaseModel):
    min_points: int = Field(7, ge=2)
    max_lookback: int = Field(14, ge=2)
    smoothing_window: int = Field(3, ge=1)
    dampening_after_days: int = Field(21, ge=0, description="Horizons longer than this are dampened")
    dampening_floor: float = Field(0.85, gt=0, le=1)
    floor_ratio: float = Field(0.7, ge=0, description="Forecast floor as a share of the lookback mean")
    drop_latest: bool = Field(True, description="Ignore the most recent day, usually incomplete")
    min_rows_with_latest: int = Field(8, ge=1)

    @model_validator(mode="after")
    def validate_windows(self):
        if self.max_lookback < self.min_points:
            raise ValueError("max_lookback must be at least min_points")
        return self


class ProductConfig(BaseModel):
    id: str = Field(..., min_length=1, description="Platform product ID")
    name: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1, description="Daily metrics table / output file stem")
    filter_pack: Optional[str] = Field(None, description="Pack-size filter for shared sheets, e.g. '1 Pack'")
    csv_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # YAML reads long numeric IDs as int
        return str(v).strip()


class AppConfig(BaseModel):
    """Complete sellerpulse configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    workbook: WorkbookConfig = Field(default_factory=WorkbookConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    forecasting: ForecastConfig = Field(default_factory=ForecastConfig)
    catalog: List[ProductConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_catalog(self):
        ids = [p.id for p in self.catalog]
        if len(ids) != len(set(ids)):
            raise ValueError("Product IDs in catalog must be unique")
        names = [p.name for p in self.catalog]
        if len(names) != len(set(names)):
            raise ValueError("Product names in catalog must be unique")
        return self


def load_config(path: str | Path) -> Dict:
    """Load a YAML configuration file."""

    with open(path, "r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def load_and_validate_config(config_dict: Optional[dict]) -> AppConfig:
    """
    Validate a raw configuration mapping.

    Args:
        config_dict: Dictionary loaded from YAML (may be empty or None)

    Returns:
        Validated AppConfig object

    Raises:
        ValidationError: If configuration is invalid
    """
    return AppConfig(**(config_dict or {}))


def load_settings(path: str | Path | None = None) -> AppConfig:
    """Load and validate ``path``; defaults apply when no path is given."""

    if path is None:
        return AppConfig()
    return load_and_validate_config(load_config(path))
