# =============================================================================
# seatbook_core/logging/config.py
# Logging Configuration for SeatBook
# =============================================================================
"""
Logging setup for the dashboard process.

Streamlit re-executes app.py on every interaction, so setup_logging is
idempotent: the first call installs the handlers, later calls only adjust
the level. Replay and reconciliation events (``seatbook_core.offline``)
are also written to a separate daily sync log.
"""

import logging
import os
import sys
import time
from datetime import date
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")
LEVEL_ENV_VAR = "SEATBOOK_LOG_LEVEL"

ROOT_LOGGER = "seatbook_core"
SYNC_LOGGER = "seatbook_core.offline"

# HTTP client and file-watcher chatter drowns the replay log at INFO
QUIET_LOGGERS = ("urllib3", "requests", "watchdog", "streamlit", "fsevents")

_configured = False


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV_VAR, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(
    level: Union[int, str, None] = None,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure process-wide logging once.

    Args:
        level: Level number or name; defaults to $SEATBOOK_LOG_LEVEL, then INFO
        log_to_file: Also write seatbook_<date>.log and sync_<date>.log
        log_dir: Directory for the log files (default: ./logs)
    """
    global _configured
    resolved = _resolve_level(level)

    if _configured:
        logging.getLogger().setLevel(resolved)
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        target_dir = log_dir or LOG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        stamp = date.today().isoformat()
        handlers.append(logging.FileHandler(target_dir / f"seatbook_{stamp}.log"))

        sync_handler = logging.FileHandler(target_dir / f"sync_{stamp}.log")
        sync_handler.setFormatter(formatter)
        logging.getLogger(SYNC_LOGGER).addHandler(sync_handler)

    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(ROOT_LOGGER).info(
        f"Logging initialized at {logging.getLevelName(resolved)}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a SeatBook module.

    Usage:
        logger = get_logger(__name__)
        logger.info("Drain started")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Time a sync step and log its outcome.

    Usage:
        with LogContext(logger, "Reconciling library 42"):
            engine.reconcile("42")
        # Reconciling library 42... started
        # Reconciling library 42... completed (0.12s)
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.started = 0.0

    def __enter__(self):
        self.started = time.perf_counter()
        self.logger.info(f"{self.operation}... started")
        return self

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.logger.info(f"{self.operation}... completed ({self.elapsed:.2f}s)")
        else:
            self.logger.error(
                f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}",
                exc_info=True,
            )
        return False
