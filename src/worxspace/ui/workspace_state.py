"""Process-wide workspace state shared by the editor subsystems.

The selection tracker, the autosave scheduler and the editor controller all
read the "active document", selection and status values through the
accessors here instead of capturing references, and every change is
announced on the :class:`~worxspace.ui.events.EventBus`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..editor.document_model import Document, SelectionSnapshot
from ..editor.pagination import PageLayout
from .events import (
    ActiveDocumentChanged,
    AutoSaveStatusChanged,
    EventBus,
    PageLayoutChanged,
    SaveStatusChanged,
    SelectionPublished,
)

__all__ = [
    "SaveState",
    "SaveStatus",
    "WorkspaceState",
    "get_workspace_state",
    "reset_workspace_state",
    "set_workspace_state",
]

LOGGER = logging.getLogger(__name__)


class SaveStatus(Enum):
    """Values shown by the save indicators."""

    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SaveState:
    """Status of the last save attempt for one document."""

    status: SaveStatus = SaveStatus.IDLE
    document_id: str | None = None
    message: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class WorkspaceState:
    """Single container for the active document, selection and indicators.

    Only the registered binding owner may change the active document; the
    other setters are open to any subsystem.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._bus = event_bus or EventBus()
        self._binding_owner: Any = None
        self._active_document: Document | None = None
        self._selection = SelectionSnapshot.empty()
        self._save_state = SaveState()
        self._autosave_state = SaveState()
        self._page_layout: PageLayout | None = None

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def active_document(self) -> Document | None:
        document = self._active_document
        return document.copy() if document is not None else None

    def active_document_id(self) -> str | None:
        document = self._active_document
        return document.id if document is not None else None

    def selection(self) -> SelectionSnapshot:
        return self._selection

    def save_state(self) -> SaveState:
        return self._save_state

    def autosave_state(self) -> SaveState:
        return self._autosave_state

    def page_layout(self) -> PageLayout | None:
        return self._page_layout

    # ------------------------------------------------------------------
    # Active document binding
    # ------------------------------------------------------------------
    def claim_document_binding(self, owner: Any) -> None:
        """Register ``owner`` as the only writer of the active document."""

        if self._binding_owner is not None and self._binding_owner is not owner:
            raise RuntimeError("The active document binding already has an owner")
        self._binding_owner = owner

    def release_document_binding(self, owner: Any) -> None:
        if self._binding_owner is owner:
            self._binding_owner = None

    def set_active_document(self, document: Document | None, *, owner: Any) -> None:
        if owner is not self._binding_owner:
            raise RuntimeError("Only the binding owner may change the active document")
        previous_id = self.active_document_id()
        self._active_document = document.copy() if document is not None else None
        current_id = self.active_document_id()
        if current_id != previous_id:
            LOGGER.debug("Active document changed: %s -> %s", previous_id, current_id)
            self._bus.publish(ActiveDocumentChanged(document_id=current_id, previous_id=previous_id))

    # ------------------------------------------------------------------
    # Shared indicators
    # ------------------------------------------------------------------
    def set_selection(self, snapshot: SelectionSnapshot) -> None:
        self._selection = snapshot
        selection_range = snapshot.range.as_tuple() if snapshot.range is not None else None
        self._bus.publish(
            SelectionPublished(text=snapshot.text, html=snapshot.html, selection_range=selection_range)
        )

    def set_save_state(
        self,
        status: SaveStatus,
        *,
        document_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self._save_state = SaveState(status=status, document_id=document_id, message=message)
        self._bus.publish(SaveStatusChanged(document_id=document_id, status=status.value, message=message))

    def set_autosave_state(
        self,
        status: SaveStatus,
        *,
        document_id: str | None = None,
        message: str | None = None,
    ) -> None:
        if (
            self._autosave_state.status is status
            and self._autosave_state.document_id == document_id
            and self._autosave_state.message == message
        ):
            return
        self._autosave_state = SaveState(status=status, document_id=document_id, message=message)
        self._bus.publish(
            AutoSaveStatusChanged(document_id=document_id, status=status.value, message=message)
        )

    def set_page_layout(self, layout: PageLayout) -> None:
        if layout == self._page_layout:
            return
        self._page_layout = layout
        self._bus.publish(
            PageLayoutChanged(
                page_count=layout.page_count,
                total_height=layout.total_height,
                zoom_level=layout.zoom_level,
            )
        )


# -----------------------------------------------------------------------------
# Global Instance
# -----------------------------------------------------------------------------

_global_workspace_state: WorkspaceState | None = None


def get_workspace_state() -> WorkspaceState:
    """Get the global workspace state instance."""
    global _global_workspace_state
    if _global_workspace_state is None:
        _global_workspace_state = WorkspaceState()
    return _global_workspace_state


def set_workspace_state(state: WorkspaceState | None) -> None:
    """Set the global workspace state instance."""
    global _global_workspace_state
    _global_workspace_state = state


def reset_workspace_state() -> None:
    """Reset the global workspace state (for testing)."""
    global _global_workspace_state
    if _global_workspace_state is not None:
        _global_workspace_state.event_bus.clear()
    _global_workspace_state = None
