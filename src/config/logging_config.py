# src/config/logging_config.py

"""Per-run logging for price_tracker.

Every launch writes ``logs/run_YYYYmmdd_HHMMSS.log``.  The ``run``
command can stay up for weeks, so the file rotates by size and only
the newest ``Settings.LOG_KEEP_RUNS`` run logs are kept.

Sweep items run in worker threads; the thread name in each file record
tells which product a failure belongs to when a sweep and a delivery
pass overlap.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from src.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "price_tracker"


def _prune_old_runs(logs_dir: Path, keep: int) -> None:
    """Delete all but the newest *keep* run logs (and their rollovers)."""
    runs = sorted(logs_dir.glob("run_*.log"), reverse=True)
    for stale in runs[keep:]:
        for path in logs_dir.glob(f"{stale.name}*"):
            path.unlink(missing_ok=True)


def setup_logging(verbose: bool = False) -> Path:
    """Attach file and console handlers to the ``price_tracker`` logger.

    Args:
        verbose: Show INFO on the console instead of WARNING.

    Returns:
        Path of this run's log file.  Repeated calls keep the handlers
        already attached and add none.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)
    if root_logger.handlers:
        return log_file

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=Settings.LOG_MAX_BYTES,
        backupCount=Settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    _prune_old_runs(logs_dir, Settings.LOG_KEEP_RUNS)
    root_logger.info("Logging to %s", log_file)
    return log_file
