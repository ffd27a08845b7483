"""Unified logging utilities for sellerpulse.

Centralizes logger setup and timing helpers so the pipeline runner can emit:
  - system logs (console + ``paths.logs_dir/<logging.file_name>``)
  - timing breakdowns (timing.log)

Core modules (extraction, analytics, forecasting) only log through their own
named loggers and never attach handlers themselves.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict

from .common.config_validator import AppConfig


SYSTEM_FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"


def _ensure_logs_dir(config: AppConfig) -> Path:
    logs_dir = Path(config.paths.logs_dir).expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(SYSTEM_FMT, datefmt=DATE_FMT))
        logger.addHandler(fh)
    except OSError as exc:  # pragma: no cover - depends on filesystem
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)


def get_logger(name: str, config: AppConfig) -> logging.Logger:
    """Return a logger with console + file handlers.

    Handlers are reset on every call so repeated pipeline runs in one
    process do not duplicate output.  The ``sellerpulse`` root logger is
    the usual target: module loggers such as ``sellerpulse.extraction``
    propagate into it.
    """
    level = getattr(logging, config.logging.level, logging.INFO)
    logs_dir = _ensure_logs_dir(config)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(SYSTEM_FMT, datefmt=DATE_FMT))
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / config.logging.file_name, level)
    logger.debug("Logging initialised. Logs will be written to %s", logs_dir / config.logging.file_name)
    return logger


def start_phase_timer(phase_name: str) -> float:
    """Start a timer for a pipeline phase and return the perf counter."""
    return time.perf_counter()


def end_phase_timer(phase_name: str, start_time: float, timing_dict: Dict[str, float], logger: logging.Logger) -> float:
    """End timer, record to ``timing_dict`` and log the elapsed time."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[phase_name] = float(elapsed)
    logger.info("Phase %s completed in %.2f seconds", phase_name, elapsed)
    return elapsed


def write_timing_report(timing_dict: Dict[str, float], config: AppConfig) -> Path | None:
    """Write a timing breakdown to ``logs_dir/timing.log``.

    Returns the path to the written report, or None on error.
    """
    logs_dir = _ensure_logs_dir(config)
    out_path = logs_dir / "timing.log"
    lines = ["---- SELLERPULSE TIMING REPORT ----"]
    total = 0.0
    for key, val in timing_dict.items():
        total += float(val)
        lines.append(f"{key}: {float(val):.2f} seconds")
    lines.append(f"Total Duration: {total:.2f} seconds")
    try:
        out_path.write_text("\n".join(lines), encoding="utf-8")
    except OSError as exc:  # pragma: no cover - depends on filesystem
        logging.getLogger("sellerpulse").warning("[WARNING] Failed to write timing report (%s): %s", str(out_path), exc)
        return None
    return out_path


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_warning(logger: logging.Logger, message: str):
    logger.warning("[WARNING] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)
