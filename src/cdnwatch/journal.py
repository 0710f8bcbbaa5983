"""Append-only daily log files under ``<root>/logs``."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from .filters import LOGS_DIR_NAME

PACKAGE_LOGGER = "cdnwatch"
LINE_FORMAT = "[%(asctime)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(PACKAGE_LOGGER)


class DailyLogFileHandler(logging.Handler):
    """Writes each record to ``<root>/<logs_dir>/<YYYY-MM-DD>.log``.

    The file is picked from the record's own timestamp, so a long-running
    watcher rolls over to a new file at midnight without any rotation logic.
    """

    def __init__(self, root: Path, *, logs_dir: str = LOGS_DIR_NAME, level: int = logging.INFO):
        super().__init__(level=level)
        self.log_dir = root / logs_dir
        self.setFormatter(logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT))

    def path_for(self, when: datetime) -> Path:
        return self.log_dir / f"{when:%Y-%m-%d}.log"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
            path = self.path_for(datetime.fromtimestamp(record.created))
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        # A broken journal must never take the watcher down with it.
        pass


def install_journal(root: Path, *, logs_dir: str = LOGS_DIR_NAME) -> DailyLogFileHandler:
    """Attach a daily file handler for ``root`` to the package logger."""

    for existing in list(logger.handlers):
        if isinstance(existing, DailyLogFileHandler):
            logger.removeHandler(existing)
            existing.close()

    handler = DailyLogFileHandler(root, logs_dir=logs_dir)
    logger.addHandler(handler)
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
    try:
        handler.log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Could not create log directory %s: %s", handler.log_dir, exc)
    return handler


def log(message: str) -> None:
    """Append one timestamped line to the active day's journal."""

    logger.info("%s", message)
