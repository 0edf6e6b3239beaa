"""Logging setup for the Worxspace application.

Log files live in a ``logs`` directory next to the document store, so a
workspace pointed at another store keeps its own log. ``WORXSPACE_LOG_DIR``
overrides the location for every entry point.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..services.settings import Settings

__all__ = ["get_log_path", "log_dir_for", "setup_logging", "setup_logging_from_settings"]

_DEFAULT_LOG_DIR = Path.home() / ".worxspace" / "logs"
_LOG_FILENAME = "worxspace.log"
_LOG_DIR_ENV = "WORXSPACE_LOG_DIR"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync")
# These log on every keystroke or selection move.
_KEYSTROKE_LOGGERS: tuple[str, ...] = (
    "worxspace.utils.debounce",
    "worxspace.editor.selection_tracker",
    "worxspace.ui.save_guard",
)
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    default_dir: Path | str | None = None,
    console: bool = True,
    trace_keystrokes: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file and an optional console handler.

    The directory is ``log_dir`` when given, then ``WORXSPACE_LOG_DIR``, then
    ``default_dir``, then ``~/.worxspace/logs``. Per-keystroke loggers stay at
    INFO even in debug mode unless ``trace_keystrokes`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir, default_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILENAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)
    _tune_keystroke_loggers(level, trace_keystrokes)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def setup_logging_from_settings(
    settings: "Settings",
    *,
    debug: bool = False,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Configure logging for a workspace described by ``settings``.

    ``settings.debug_logging`` (or ``debug``) switches to DEBUG; the log file
    goes next to ``settings.store_path``.
    """

    verbose = debug or settings.debug_logging
    return setup_logging(
        logging.DEBUG if verbose else logging.INFO,
        default_dir=log_dir_for(settings),
        console=console,
        force=force,
    )


def log_dir_for(settings: "Settings") -> Path:
    """Return the log directory belonging to the store in ``settings``."""

    return Path(settings.store_path).expanduser().parent / "logs"


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None, default_dir: Path | str | None) -> Path:
    env_override = os.environ.get(_LOG_DIR_ENV)
    return Path(log_dir or env_override or default_dir or _DEFAULT_LOG_DIR).expanduser()


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)


def _tune_keystroke_loggers(root_level: int, trace_keystrokes: bool) -> None:
    level = logging.NOTSET if trace_keystrokes else max(root_level, logging.INFO)
    for logger_name in _KEYSTROKE_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)
