# src/job_scheduler/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "scheduler.log"

_CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console shows job_scheduler logs (firing lines included).
    Everything else, captured py.warnings too, only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("job_scheduler."):
            return True
        return record.levelno >= logging.ERROR


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_CONSOLE_FORMAT, datefmt=_DATEFMT))
    handler.addFilter(_ConsoleNoiseFilter())
    return handler


def _file_handler(path: Path, level: int, max_bytes: int, backups: int) -> logging.Handler:
    handler = RotatingFileHandler(
        str(path), maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATEFMT))
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/jobs",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5_000_000,
    backups: int = 3,
) -> Path:
    """
    Install the stderr handler (filtered) and a rotating file handler.

    The dispatcher thread and the console share these handlers, so call this
    once from main() before anything else logs. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(console_level))
    root.addHandler(_file_handler(log_file, file_level, max_bytes, backups))

    logging.captureWarnings(True)
    # asyncio reports slow callbacks and never-retrieved task exceptions here.
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return log_file
