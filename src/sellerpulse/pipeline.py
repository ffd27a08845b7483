"""Command-line runner for local sellerpulse jobs.

Each ``run_*`` function loads and validates the YAML config, sets up the
``sellerpulse`` logger, does one job on local files and writes its outputs
under ``paths.output_dir``:

- ``extract-sheet``: sheet CSV export -> daily CSV for one product
- ``import-workbook``: Product List + Traffic xlsx -> daily CSV per product
- ``forecast``: daily CSV(s) -> forecast CSV + metadata JSON
- ``summarize``: daily CSV -> period comparison CSV

Fetching exports and writing to the daily-metrics store stay outside.
"""
from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .analytics.periods import summaries_to_frame, summarize_dataset, summarize_history, summarize_period
from .common.config_validator import AppConfig, load_settings
from .daily_records import (
    ALL_PRODUCTS,
    combine_daily_frames,
    daily_frame_to_dataset,
    dataset_to_daily_frame,
    resolve_product,
)
from .errors import InsufficientDataError, SellerPulseError
from .extraction.tabular import extract_metric_series
from .extraction.workbook import BASE_FIELDS, RATIO_FIELDS, load_sheet_rows, merge_workbook_exports
from .forecasting_utils import build_forecast, forecast_frame, persist_forecast_outputs, write_metadata
from .logging_utils import (
    end_phase_timer,
    get_logger,
    log_error,
    log_system_event,
    log_warning,
    start_phase_timer,
    write_timing_report,
)
from .metric_registry_utils import storage_column


LOGGER_NAME = "sellerpulse"


def _setup(config_path: Optional[str]) -> tuple[AppConfig, logging.Logger]:
    config = load_settings(config_path)
    logger = get_logger(LOGGER_NAME, config)
    return config, logger


def _output_dir(config: AppConfig) -> Path:
    out = Path(config.paths.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out


def run_sheet_extraction(
    config_path: Optional[str],
    csv_path: str,
    product: Optional[str] = None,
) -> Dict[str, object]:
    """Extract a sheet CSV export into a daily CSV.

    With ``product`` the catalog entry supplies the pack filter and the
    output name (its table); otherwise the output is ``<csv stem>_daily.csv``.
    """
    config, logger = _setup(config_path)
    timing: Dict[str, float] = {}

    product_cfg = resolve_product(config.catalog, product) if product else None
    source = product_cfg.name if product_cfg else Path(csv_path).stem

    start = start_phase_timer("extract")
    text = Path(csv_path).read_text(encoding="utf-8")
    dataset = extract_metric_series(
        text,
        filter_pack=product_cfg.filter_pack if product_cfg else None,
        config=config.extraction,
        source_name=source,
    )
    end_phase_timer("extract", start, timing, logger)

    if dataset.is_empty:
        log_warning(logger, f"No metrics extracted from {csv_path}")

    frame = dataset_to_daily_frame(dataset)
    file_name = f"{product_cfg.table}.csv" if product_cfg else f"{Path(csv_path).stem}_daily.csv"
    out_path = _output_dir(config) / file_name
    frame.to_csv(out_path, index=False)
    log_system_event(logger, f"Wrote {len(frame)} daily rows for {source} to {out_path}")
    write_timing_report(timing, config)
    return {"dataset": dataset, "frame": frame, "output_path": out_path, "timing": timing}


def run_workbook_import(
    config_path: Optional[str],
    product_list_path: Optional[str],
    traffic_paths: Optional[Mapping[str, str]] = None,
) -> Dict[str, object]:
    """Merge workbook exports and write one daily CSV per catalog product.

    ``traffic_paths`` maps a product (id, name or table) to its Traffic
    Breakdown xlsx.
    """
    config, logger = _setup(config_path)
    timing: Dict[str, float] = {}

    start = start_phase_timer("load_workbooks")
    product_rows = load_sheet_rows(product_list_path) if product_list_path else None
    traffic_sheets = {}
    for product, path in (traffic_paths or {}).items():
        product_cfg = resolve_product(config.catalog, product)
        traffic_sheets[product_cfg.id] = load_sheet_rows(path)
    end_phase_timer("load_workbooks", start, timing, logger)

    start = start_phase_timer("merge")
    merged = merge_workbook_exports(product_rows, traffic_sheets, config.catalog, config.workbook)
    end_phase_timer("merge", start, timing, logger)

    outputs: Dict[str, Path] = {}
    if merged.empty:
        log_warning(logger, "No data could be extracted from the workbook exports")
    else:
        out_dir = _output_dir(config)
        for table, group in merged.groupby("table", sort=True):
            out_path = out_dir / f"{table}.csv"
            group[["date", *BASE_FIELDS, *RATIO_FIELDS]].sort_values("date").to_csv(out_path, index=False)
            outputs[str(table)] = out_path
        log_system_event(logger, f"Wrote {len(merged)} product-day records to {len(outputs)} files")

    write_timing_report(timing, config)
    return {"merged": merged, "outputs": outputs, "timing": timing}


def _read_daily_csv(path: str) -> pd.DataFrame:
    return pd.read_csv(path, dtype={"date": str})


def run_forecast(
    config_path: Optional[str],
    daily_csv_paths: Sequence[str],
    metric: str,
    horizon: int,
    label: Optional[str] = None,
) -> Dict[str, object]:
    """Forecast one metric of a daily CSV.

    Several paths are summed per date first (the "All Products" view).
    """
    config, logger = _setup(config_path)
    column = storage_column(metric)
    paths = list(daily_csv_paths)
    frames = [_read_daily_csv(p) for p in paths]

    if len(frames) > 1:
        daily = combine_daily_frames(frames)
        label = label or ALL_PRODUCTS
    else:
        daily = frames[0]
        label = label or Path(paths[0]).stem

    if column not in daily.columns:
        raise InsufficientDataError(f"Column {column!r} not present in {', '.join(paths)}")

    daily = daily.assign(date=pd.to_datetime(daily["date"], errors="coerce")).dropna(subset=["date"])
    daily = daily.sort_values("date").reset_index(drop=True)
    values = pd.to_numeric(daily[column], errors="coerce").fillna(0.0).tolist()

    forecast = build_forecast(daily["date"].tolist(), values, horizon, config.forecasting)
    frame = forecast_frame(forecast)

    out_dir = _output_dir(config)
    stem = f"{label}_{column}".replace(" ", "_").replace("&", "and").replace("+", "plus")
    csv_path = persist_forecast_outputs(frame, out_dir, stem)
    metadata = {
        **forecast.metadata,
        "label": label,
        "metric": metric,
        "column": column,
        "sources": paths,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    metadata_path = write_metadata(metadata, out_dir, stem)
    log_system_event(logger, f"Forecast for {label} {column} written to {csv_path}")
    return {"forecast": forecast, "frame": frame, "output_path": csv_path, "metadata_path": metadata_path}


def run_summary(
    config_path: Optional[str],
    daily_csv_path: str,
    periods: Optional[int] = None,
    end_date: Optional[str] = None,
    granularity: str = "day",
) -> Dict[str, object]:
    """Period comparison for every metric of a daily CSV.

    Without ``periods`` the whole-history comparison is used.
    """
    config, logger = _setup(config_path)
    dataset = daily_frame_to_dataset(_read_daily_csv(daily_csv_path), source_name=Path(daily_csv_path).stem)
    if periods is None:
        summaries = summarize_dataset(dataset, summarize_history, config=config.aggregation)
    else:
        summaries = summarize_dataset(
            dataset,
            summarize_period,
            periods=periods,
            end_date=end_date,
            granularity=granularity,
            config=config.aggregation,
        )
    frame = summaries_to_frame(summaries)
    out_path = _output_dir(config) / f"{Path(daily_csv_path).stem}_summary.csv"
    frame.to_csv(out_path, index=False)
    log_system_event(logger, f"Summarised {len(summaries)} metrics from {daily_csv_path}")
    return {"summaries": summaries, "frame": frame, "output_path": out_path}


def _parse_traffic(values: Optional[List[str]]) -> Dict[str, str]:
    traffic: Dict[str, str] = {}
    for item in values or []:
        product, sep, path = item.partition("=")
        if not sep or not product or not path:
            raise argparse.ArgumentTypeError(f"--traffic expects PRODUCT=PATH, got {item!r}")
        traffic[product] = path
    return traffic


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seller dashboard extraction, summaries and forecasts")
    parser.add_argument("--config", default="config.yaml", help="Path to configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract-sheet", help="Extract a sheet CSV export into a daily CSV")
    p.add_argument("csv_path")
    p.add_argument("--product", default=None, help="Catalog product name, table or id")

    p = sub.add_parser("import-workbook", help="Merge Product List and Traffic exports")
    p.add_argument("--product-list", default=None, help="Product List xlsx")
    p.add_argument("--traffic", action="append", metavar="PRODUCT=PATH", help="Traffic Breakdown xlsx per product")

    p = sub.add_parser("forecast", help="Forecast one metric of one or more daily CSVs")
    p.add_argument("daily_csv", nargs="+")
    p.add_argument("--metric", default="GMV")
    p.add_argument("--horizon", type=int, default=14)
    p.add_argument("--label", default=None)

    p = sub.add_parser("summarize", help="Current vs previous period for every metric")
    p.add_argument("daily_csv")
    p.add_argument("--periods", type=int, default=None)
    p.add_argument("--end-date", default=None)
    p.add_argument("--granularity", choices=["day", "week"], default="day")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "extract-sheet":
            run_sheet_extraction(args.config, args.csv_path, product=args.product)
        elif args.command == "import-workbook":
            run_workbook_import(args.config, args.product_list, _parse_traffic(args.traffic))
        elif args.command == "forecast":
            run_forecast(args.config, args.daily_csv, args.metric, args.horizon, label=args.label)
        elif args.command == "summarize":
            run_summary(args.config, args.daily_csv, args.periods, args.end_date, args.granularity)
    except (SellerPulseError, argparse.ArgumentTypeError) as exc:
        log_error(logging.getLogger(LOGGER_NAME), str(exc))
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI guard
    raise SystemExit(main())
