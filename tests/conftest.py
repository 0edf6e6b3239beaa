"""Shared pytest fixtures."""

from __future__ import annotations

import logging

import pytest

from tests.helpers import FakeScheduler
from worxspace.ui.workspace_state import reset_workspace_state


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    for name in (
        "WORXSPACE_STORE_PATH",
        "WORXSPACE_LAST_PROJECT",
        "WORXSPACE_DEBUG_LOGGING",
        "WORXSPACE_AUTOSAVE",
        "WORXSPACE_PAGE_MODE",
        "WORXSPACE_SELECTION_DEBOUNCE_MS",
        "WORXSPACE_AUTOSAVE_DELAY_MS",
        "WORXSPACE_DEFAULT_ZOOM",
        "WORXSPACE_WRITE_RETRIES",
        "WORXSPACE_RETRY_MIN_SECONDS",
        "WORXSPACE_RETRY_MAX_SECONDS",
        "WORXSPACE_DEBUG",
        "WORXSPACE_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WORXSPACE_LOG_DIR", str(tmp_path / "logs"))
    yield
    reset_workspace_state()


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
