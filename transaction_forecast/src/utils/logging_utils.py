"""Logging configuration for the analysis scripts.

Design goals
------------
- One console handler per logger, even when a notebook re-runs a cell.
- Optional file logging so a full run leaves a readable trace next to its
  output tables.
- No implicit file creation unless ``log_file`` is provided.

Used by
-------
- ``transaction_forecast/run_all_experiments.py``
- ``transaction_forecast/src/experiments/*.py``
- ``transaction_forecast/src/data/check_data.py``
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
DEFAULT_LOGGER_NAME = "transaction_forecast"


def _resolve_log_path(log_file: Union[str, Path], logger_name: Optional[str]) -> Path:
    """Turn a directory argument into ``<dir>/<logger_name>.log``."""
    log_path = Path(log_file)
    is_dir = (log_path.exists() and log_path.is_dir()) or str(log_path).endswith(("/", "\\"))
    if is_dir:
        name = (logger_name or "root").replace("/", "_").replace(".", "_")
        log_path = log_path / f"{name}.log"
    return log_path


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    logger_name: Optional[str] = DEFAULT_LOGGER_NAME,
    *,
    force: bool = True,
    capture_warnings: bool = True,
) -> logging.Logger:
    """Configure and return the package logger.

    Library modules log through ``logging.getLogger(__name__)``, so configuring
    the ``transaction_forecast`` logger here also routes their records.

    Parameters
    ----------
    level:
        Log level (default: INFO).
    log_file:
        Optional path to a log file. If a directory is provided, the file name
        defaults to ``<logger_name>.log``.
    logger_name:
        Logger to configure. ``None`` configures the root logger.
    force:
        If True (default), remove existing handlers to prevent duplicate logs.
    capture_warnings:
        If True (default), route Python warnings (pandas, scikit-learn, PyCaret)
        through logging.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)

    console_handler = logging.StreamHandler(stream=sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = _resolve_log_path(log_file, logger_name)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Records stop here; the root logger is left to the host application.
    logger.propagate = False

    if capture_warnings:
        logging.captureWarnings(True)

    return logger


__all__ = ["configure_logging", "DEFAULT_LOG_FORMAT", "DEFAULT_LOGGER_NAME"]
