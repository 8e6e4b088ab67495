"""Process-wide logging setup for the ECP visual server."""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 3

# aiohttp.access logs every request at INFO, and observers poll /state freely
QUIET_LOGGERS = ("aiohttp.access",)


def parse_level(level: Union[int, str]) -> int:
    """Turn ``"info"``/``"warn"``/``20`` into a logging level number."""
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def _reset_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Install the console and rotating-file handlers on the root logger.

    Without ``force`` an already configured root logger only has its level
    changed. With neither console nor file output, stderr is used so errors
    are never silently dropped.
    """
    numeric_level = parse_level(level)
    root = logging.getLogger()

    if root.handlers and not force:
        root.setLevel(numeric_level)
        return

    _reset_handlers(root)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging", "parse_level", "LOG_FORMAT", "LOG_DATEFMT"]
