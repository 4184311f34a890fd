# src/tasktrack/logging_setup.py

"""
Logging for the tasktrack CLI.

stdout carries command replies only, so the console handler writes to
stderr. The log file in the data directory keeps the full DEBUG trail of
every transaction, rejected mutation and dependency repair.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "tasktrack.log"

_CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(funcName)s]: %(message)s"


class _ConsoleNoiseFilter(logging.Filter):
    """Pass engine records; libraries and captured warnings only from ERROR up."""

    def __init__(self, prefix: str = "tasktrack") -> None:
        super().__init__()
        self._prefix = prefix + "."

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(self._prefix):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasktrack",
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers on the root logger.

    Replaces any handlers already there, so calling it twice does not
    duplicate output. Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
