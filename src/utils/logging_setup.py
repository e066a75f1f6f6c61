"""
Logging configuration for array maintenance runs.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "array_maintenance"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOG_FILE = Path("/var/log/array-maintenance.log")


class TolerantFileHandler(logging.FileHandler):
    """File handler that reports write failures once instead of raising."""

    def __init__(self, filename: Path, encoding: str = "utf-8") -> None:
        super().__init__(filename, encoding=encoding)
        self._warned = False

    def handleError(self, record: logging.LogRecord) -> None:
        if self._warned:
            return
        self._warned = True
        exc = sys.exc_info()[1]
        sys.stderr.write(f"WARNING: cannot write to log file {self.baseFilename}: {exc}\n")


def default_log_file() -> Path:
    """Return the log file path for the invoking user's privilege level."""
    if os.geteuid() == 0:
        return ROOT_LOG_FILE
    state_home = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state_home) / "array-maintenance" / "array-maintenance.log"


def setup_logging(log_file: Optional[Path] = None, level: str = "INFO") -> logging.Logger:
    """Initialize the console and file handlers and return the base logger."""
    formatter = logging.Formatter(LOG_FORMAT)
    base_logger = logging.getLogger(LOGGER_NAME)
    if base_logger.handlers:
        return base_logger
    base_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    base_logger.propagate = False

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    base_logger.addHandler(stream_handler)

    log_file = log_file or default_log_file()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TolerantFileHandler(log_file)
    except OSError as exc:
        base_logger.warning("Log file %s unavailable, logging to console only: %s", log_file, exc)
    else:
        file_handler.setFormatter(formatter)
        base_logger.addHandler(file_handler)

    return base_logger
