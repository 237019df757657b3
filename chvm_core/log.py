"""File logging for chvm."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .layout import LOG_FILE_NAME

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
LOGGER_NAMES = ("chvm_core", "chvm_cli")

_HANDLER_MARK = "_chvm_handler"


def configure_logging(
    logs_dir: Path | str,
    *,
    level: int = logging.INFO,
    verbose: bool = False,
) -> list[logging.Logger]:
    """Attach a rotating ``chvm.log`` handler (and stderr when verbose) to the chvm loggers.

    Calling it again replaces the handlers installed by the previous call.
    """
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = RotatingFileHandler(
        logs_dir / LOG_FILE_NAME,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [file_handler]
    if verbose:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG)
        console.setFormatter(formatter)
        handlers.append(console)

    configured = []
    for name in LOGGER_NAMES:
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            if getattr(handler, _HANDLER_MARK, False):
                target.removeHandler(handler)
                handler.close()
        for handler in handlers:
            setattr(handler, _HANDLER_MARK, True)
            target.addHandler(handler)
        target.setLevel(logging.DEBUG if verbose else level)
        configured.append(target)
    return configured


def clear_logs(logs_dir: Path | str) -> int:
    """Remove every file in ``logs_dir``; returns how many were deleted."""
    logs_dir = Path(logs_dir)
    if not logs_dir.exists():
        return 0
    removed = 0
    for entry in logs_dir.iterdir():
        if entry.is_file():
            entry.unlink()
            removed += 1
    return removed
