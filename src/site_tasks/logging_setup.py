# src/site_tasks/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "site_tasks.log"

# Loggers that emit one line per store call; too chatty for the console.
_STORE_LOGGERS = ("site_tasks.tasks.task_store", "site_tasks.directory.")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console policy:
    - site_tasks.* passes, except store loggers below WARNING
    - py.warnings and third-party loggers only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("site_tasks."):
            return record.levelno >= logging.ERROR
        if name.startswith(_STORE_LOGGERS):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/site_tasks",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Install the console handler (filtered, stderr) and a rotating file log
    with everything at `file_level` and above. Returns the log file path.

    Replaces whatever handlers the root logger already had, so calling it
    twice does not duplicate output.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
