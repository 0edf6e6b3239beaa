"""Editor session bootstrap.

Creates and wires the sync core around one editing surface:

1. Installs the process-wide workspace state and its event bus
2. Builds the document repository and version store from settings
3. Instantiates the editor controller, selection tracker and autosave scheduler
4. Returns the configured :class:`EditorSession`

Usage:
    from worxspace.ui.bootstrap import create_editor_session

    session = create_editor_session(surface, settings)
    session.start()
    await session.controller.load_document(document_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..editor.pagination import DEFAULT_ZOOM, PageLayout, PaginationEngine
from ..editor.selection_tracker import SelectionTracker
from ..editor.surface import EditingSurface
from ..services.document_storage import DocumentRepository, JsonDocumentRepository
from ..services.settings import Settings
from ..services.version_store import VersionStore
from ..utils.debounce import TimerScheduler
from .autosave_scheduler import AutoSaveScheduler
from .editor_sync_controller import EditorSyncController
from .events import EventBus
from .save_guard import SaveGuard
from .workspace_state import WorkspaceState, get_workspace_state, set_workspace_state

__all__ = ["EditorSession", "create_editor_session", "create_repository"]

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EditorSession:
    """Components bound to one editing surface."""

    event_bus: EventBus
    state: WorkspaceState
    version_store: VersionStore
    controller: EditorSyncController
    tracker: SelectionTracker
    autosave: AutoSaveScheduler
    pagination: PaginationEngine
    surface: EditingSurface

    def start(self) -> None:
        """Start observing the surface (selection publish happens immediately)."""

        self.tracker.bind(self.surface)
        self.autosave.start()

    def update_page_layout(self, content_height: float, zoom_level: float = DEFAULT_ZOOM) -> PageLayout:
        layout = self.pagination.compute(content_height, zoom_level)
        self.state.set_page_layout(layout)
        return layout

    async def aclose(self) -> None:
        """Write pending edits, tear down listeners and release the workspace state."""

        self.tracker.unbind()
        await self.autosave.flush()
        await self.autosave.aclose()
        self.controller.dispose()
        if get_workspace_state() is self.state:
            set_workspace_state(None)


def create_repository(settings: Settings) -> DocumentRepository:
    """Build the JSON-backed repository configured by ``settings``."""

    return JsonDocumentRepository(
        Path(settings.store_path),
        write_retries=settings.write_retries,
        retry_min_seconds=settings.retry_min_seconds,
        retry_max_seconds=settings.retry_max_seconds,
    )


def create_editor_session(
    surface: EditingSurface,
    settings: Settings | None = None,
    *,
    repository: DocumentRepository | None = None,
    event_bus: EventBus | None = None,
    scheduler: TimerScheduler | None = None,
) -> EditorSession:
    """Create and wire all sync components for ``surface``.

    Args:
        surface: The editing surface to observe and mutate.
        settings: Timing and storage configuration; defaults when None.
        repository: Optional repository; a JSON store at
                    ``settings.store_path`` is created when None.
        event_bus: Optional event bus; when None the session joins the
                   process-wide workspace state and its bus.
        scheduler: Timer scheduler for all debouncers (the running
                   asyncio loop when None).
    """
    settings = settings or Settings()
    _LOGGER.info("Bootstrapping editor session...")

    if event_bus is None:
        state = get_workspace_state()
        event_bus = state.event_bus
    else:
        state = WorkspaceState(event_bus)
        set_workspace_state(state)
    version_store = VersionStore(repository or create_repository(settings))
    guard = SaveGuard()

    controller = EditorSyncController(
        surface,
        version_store,
        state=state,
        event_bus=event_bus,
        guard=guard,
        status_reset_ms=settings.save_status_reset_ms,
        scheduler=scheduler,
    )
    tracker = SelectionTracker(
        state.set_selection,
        debounce_ms=settings.selection_debounce_ms,
        scheduler=scheduler,
    )
    autosave = AutoSaveScheduler(
        surface,
        version_store,
        controller,
        guard=guard,
        state=state,
        delay_ms=settings.autosave_delay_ms,
        status_reset_ms=settings.save_status_reset_ms,
        enabled=settings.autosave_enabled,
        scheduler=scheduler,
    )
    _LOGGER.debug("Editor session wired")

    return EditorSession(
        event_bus=event_bus,
        state=state,
        version_store=version_store,
        controller=controller,
        tracker=tracker,
        autosave=autosave,
        pagination=PaginationEngine(),
        surface=surface,
    )
