"""Logging setup for the twinpane desktop app.

Records go to a rotating file under ``~/.twinpane/logs`` (``TWINPANE_LOG_DIR``
overrides the directory) and, optionally, to the console. Individual loggers
can be tuned with ``TWINPANE_LOG_LEVELS``, a comma separated list of
``name=LEVEL`` pairs such as ``twinpane.ui=DEBUG,qasync=ERROR``.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, TextIO

__all__ = ["LoggingState", "get_log_path", "parse_level_overrides", "set_debug", "setup_logging"]

LOG_FILE_NAME = "twinpane.log"
_DEFAULT_LOG_DIR = Path.home() / ".twinpane" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "PySide6")
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True)
class LoggingState:
    """Handlers installed by :func:`setup_logging`."""

    log_path: Path
    level: int
    handlers: list[logging.Handler] = field(default_factory=list)
    overrides: dict[str, int] = field(default_factory=dict)


_STATE: LoggingState | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    stream: TextIO | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file and an optional console handler."""

    global _STATE
    if _STATE is not None and not force:
        return _STATE.log_path

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(stream))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    overrides = parse_level_overrides(os.environ.get("TWINPANE_LOG_LEVELS", ""))
    _apply_levels(level, overrides)
    _STATE = LoggingState(log_path=log_path, level=level, handlers=handlers, overrides=overrides)
    return log_path


def set_debug(enabled: bool) -> None:
    """Switch the installed handlers between DEBUG and INFO without reinstalling them."""

    if _STATE is None:
        return
    level = logging.DEBUG if enabled else logging.INFO
    logging.getLogger().setLevel(level)
    for handler in _STATE.handlers:
        handler.setLevel(level)
    _apply_levels(level, _STATE.overrides)
    _STATE.level = level


def get_log_path() -> Path | None:
    return _STATE.log_path if _STATE is not None else None


def parse_level_overrides(value: str) -> dict[str, int]:
    """Parse ``name=LEVEL`` pairs; malformed entries are skipped."""

    overrides: dict[str, int] = {}
    for entry in value.split(","):
        name, sep, level_name = entry.partition("=")
        name = name.strip()
        level = logging.getLevelName(level_name.strip().upper())
        if not sep or not name or not isinstance(level, int):
            continue
        overrides[name] = level
    return overrides


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("TWINPANE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _apply_levels(root_level: int, overrides: Mapping[str, int]) -> None:
    quiet_level = max(logging.WARNING, root_level)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
    for logger_name, level in overrides.items():
        logging.getLogger(logger_name).setLevel(level)
