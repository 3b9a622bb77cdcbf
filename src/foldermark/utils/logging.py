"""Logging setup for the foldermark CLI."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging"]

_LOG_FILENAME = "foldermark.log"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_MAX_BYTES = 1_000_000
_BACKUP_COUNT = 3
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "PySide6")
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Send records to ``foldermark.log`` and, with ``console``, to stderr.

    The directory comes from ``log_dir``, then ``FOLDERMARK_LOG_DIR``, then
    ``logs/`` under the application data directory. Repeated calls keep the
    first configuration unless ``force`` is set. Returns the log file path.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / _LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # Picker and event-loop libraries log heavily at DEBUG.
    quiet_level = max(level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    chosen = log_dir or os.environ.get("FOLDERMARK_LOG_DIR")
    if chosen:
        return Path(chosen).expanduser()

    from ..services.settings import default_data_dir

    return default_data_dir() / "logs"
