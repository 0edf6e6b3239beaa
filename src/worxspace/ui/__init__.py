"""UI package holding the sync controllers and the desktop window."""

from importlib import import_module
from typing import Any

from .autosave_scheduler import AutoSaveScheduler
from .bootstrap import EditorSession, create_editor_session
from .editor_sync_controller import EditorSyncController, SaveOutcome, SaveResult
from .events import EventBus
from .save_guard import SaveGuard
from .workspace_state import SaveStatus, WorkspaceState

__all__ = [
    # Bootstrap
    "EditorSession",
    "create_editor_session",
    # Event Bus
    "EventBus",
    # Controllers
    "AutoSaveScheduler",
    "EditorSyncController",
    "SaveGuard",
    "SaveOutcome",
    "SaveResult",
    # State
    "SaveStatus",
    "WorkspaceState",
    # Main Window (loaded on first access, requires PySide6)
    "EditorWindow",
]


def __getattr__(name: str) -> Any:
    if name == "EditorWindow":
        module = import_module(f"{__name__}.editor_window")
        return module.EditorWindow
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
