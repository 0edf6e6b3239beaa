"""Tests for the logging bootstrap."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from worxspace.services.settings import Settings
from worxspace.utils import logging as logging_utils

_TUNED_LOGGERS = ("asyncio", "qasync", *logging_utils._KEYSTROKE_LOGGERS)


@pytest.fixture(autouse=True)
def _fresh_logging_state(monkeypatch: pytest.MonkeyPatch, restore_root_logging):
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    levels = {name: logging.getLogger(name).level for name in _TUNED_LOGGERS}
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


def test_setup_logging_writes_to_rotating_file(tmp_path: Path) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False)

    logging.getLogger("worxspace.test").info("hello from the test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "worxspace.log"
    assert logging_utils.get_log_path() == log_path
    assert any(
        isinstance(handler, logging.handlers.RotatingFileHandler) for handler in logging.getLogger().handlers
    )
    assert "hello from the test" in log_path.read_text(encoding="utf-8")


def test_setup_logging_is_idempotent_unless_forced(tmp_path: Path) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "one", console=False)
    second = logging_utils.setup_logging(log_dir=tmp_path / "two", console=False)
    forced = logging_utils.setup_logging(log_dir=tmp_path / "two", console=False, force=True)

    assert second == first
    assert forced == tmp_path / "two" / "worxspace.log"


def test_log_dir_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORXSPACE_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False)

    assert log_path.parent == tmp_path / "env-logs"


def test_noisy_loggers_are_quieted(tmp_path: Path) -> None:
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False)

    assert logging.getLogger("asyncio").level == logging.WARNING


def test_settings_put_the_log_next_to_the_document_store(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("WORXSPACE_LOG_DIR", raising=False)
    settings = Settings(store_path=str(tmp_path / "store" / "documents.json"), debug_logging=True)

    log_path = logging_utils.setup_logging_from_settings(settings, console=False)

    assert log_path == tmp_path / "store" / "logs" / "worxspace.log"
    assert logging_utils.log_dir_for(settings) == tmp_path / "store" / "logs"
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("worxspace.utils.debounce").level == logging.INFO
    assert logging.getLogger("worxspace.editor.selection_tracker").level == logging.INFO


def test_environment_overrides_the_store_log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORXSPACE_LOG_DIR", str(tmp_path / "env-logs"))
    settings = Settings(store_path=str(tmp_path / "documents.json"))

    log_path = logging_utils.setup_logging_from_settings(settings, console=False)

    assert log_path.parent == tmp_path / "env-logs"
    assert logging.getLogger().level == logging.INFO


def test_trace_keystrokes_leaves_keystroke_loggers_unfiltered(tmp_path: Path) -> None:
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, trace_keystrokes=True)

    assert logging.getLogger("worxspace.ui.save_guard").level == logging.NOTSET
