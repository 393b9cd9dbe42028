# src/packup/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Per-row store writes and permission denials: file only, unless console is at DEBUG.
_CHATTY = (
    "packup.todos.todo_store",
    "packup.users.user_store",
    "packup.todos.permissions",
)

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _ConsoleFilter(logging.Filter):
    """Keep the console REPL readable: packup at the console level, chatty packup loggers at INFO+, others at WARNING+."""

    def __init__(self, console_level: int) -> None:
        super().__init__()
        self._console_level = console_level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(_CHATTY):
            return record.levelno >= max(self._console_level, logging.INFO)
        if record.name.startswith("packup."):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(settings) -> Path:
    """
    Console handler at settings.log_level plus a DEBUG file at <data_dir>/packup.log.

    Call once, before the first log line. Returns the log file path.
    """
    console_level = getattr(logging, str(getattr(settings, "log_level", "INFO")).upper(), logging.INFO)
    log_file = Path(getattr(settings, "data_dir", ".local/packup")) / "packup.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleFilter(console_level))
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # uvicorn logs every request at INFO; the file keeps them, the console does not.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.captureWarnings(True)
    return log_file
