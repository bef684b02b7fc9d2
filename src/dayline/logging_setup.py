# src/dayline/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FILE_NAME = "dayline.log"

# Per-occurrence state changes are already echoed by the REPL replies.
DEFAULT_QUIET_LOGGERS: tuple[str, ...] = (
    "dayline.instances",
    "dayline.sources",
)


def _under(name: str, prefix: str) -> bool:
    return name == prefix or name.startswith(prefix + ".")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the REPL:
    - dayline logs pass, except the quiet subtrees (WARNING+ only)
    - 'py.warnings' and third-party loggers pass at ERROR+ only
    """

    def __init__(self, quiet: Iterable[str] = DEFAULT_QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if _under(name, "dayline"):
            if any(_under(name, prefix) for prefix in self._quiet):
                return record.levelno >= logging.WARNING
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/dayline",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
) -> Path:
    """
    Console handler (filtered) plus a file handler with everything at `file_level`.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Re-running replaces handlers instead of stacking them.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(quiet_loggers))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
