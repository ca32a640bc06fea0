"""Logging helpers for the spread tracker."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional, Union

DEFAULT_LOG_PATH = Path("logs/spread-tracker.log")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty third-party loggers; per-request adapter failures are already logged at DEBUG.
DEFAULT_LOGGER_LEVELS: Mapping[str, Union[int, str]] = {
    "aiohttp": logging.WARNING,
    "httpx": logging.WARNING,
    "telegram": logging.INFO,
}


def resolve_level(value: object, default: int) -> int:
    """Turn ``"debug"``, ``"WARNING"`` or ``10`` into a numeric level."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


def apply_logger_levels(levels: Mapping[str, object]) -> dict[str, int]:
    """Set per-logger levels, skipping values that are not valid level names."""

    applied: dict[str, int] = {}
    for name, value in levels.items():
        level = resolve_level(value, -1)
        if level < 0:
            logging.getLogger(__name__).warning("Ignoring invalid level %r for logger %s", value, name)
            continue
        logging.getLogger(str(name)).setLevel(level)
        applied[str(name)] = level
    return applied


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[Path] = None,
    logger_levels: Optional[Mapping[str, object]] = None,
) -> None:
    """Install console and rotating file handlers on the root logger.

    Handlers are only added once per process. ``DEFAULT_LOGGER_LEVELS`` and
    then ``logger_levels`` are applied on every call.
    """

    apply_logger_levels(DEFAULT_LOGGER_LEVELS)
    if logger_levels:
        apply_logger_levels(logger_levels)

    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    path = log_file or DEFAULT_LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    for handler in (
        logging.StreamHandler(),
        RotatingFileHandler(path, maxBytes=2_000_000, backupCount=5),
    ):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.debug("Logging configured", extra={"log_file": str(path)})


__all__ = ["DEFAULT_LOGGER_LEVELS", "apply_logger_levels", "resolve_level", "setup_logging"]
