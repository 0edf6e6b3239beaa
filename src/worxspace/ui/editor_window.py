"""Qt host window around one editor session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QLabel, QMainWindow, QMessageBox, QToolBar

from ..editor.pagination import DEFAULT_ZOOM, clamp_zoom, zoom_in, zoom_out
from ..editor.qt_surface import QtTextSurface
from ..services.document_storage import DocumentRepository
from ..services.settings import Settings
from .bootstrap import EditorSession, create_editor_session
from .editor_sync_controller import SaveOutcome
from .events import (
    AutoSaveStatusChanged,
    DocumentBound,
    NoticePosted,
    PageLayoutChanged,
    SaveStatusChanged,
    SelectionPublished,
)

__all__ = ["EditorWindow", "format_save_status"]

_LOGGER = logging.getLogger(__name__)
_BASE_FONT_POINT_SIZE = 12.0


def format_save_status(status: str, message: str | None = None) -> str:
    """Return the status-bar label for a save indicator value."""

    if status == "saving":
        return "Saving…"
    if status == "saved":
        return "Saved"
    if status == "error":
        return f"Save failed: {message}" if message else "Save failed"
    return ""


class EditorWindow(QMainWindow):
    """Main window: rich-text surface, save actions, zoom and status bar."""

    def __init__(
        self,
        settings: Settings,
        *,
        repository: DocumentRepository | None = None,
        parent: Any = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings
        self._surface = QtTextSurface(parent=self)
        self._session: EditorSession = create_editor_session(
            self._surface,
            settings,
            repository=repository,
        )
        self._zoom = int(clamp_zoom(settings.default_zoom or DEFAULT_ZOOM))
        self._tasks: set[asyncio.Task[Any]] = set()

        self.setWindowTitle("Worxspace")
        self.setCentralWidget(self._surface.widget)
        self._save_label = QLabel(self)
        self._autosave_label = QLabel(self)
        self._page_label = QLabel(self)
        self._selection_label = QLabel(self)
        for label in (self._save_label, self._autosave_label, self._page_label, self._selection_label):
            self.statusBar().addPermanentWidget(label)
        self._build_actions()
        self._subscribe()
        self._apply_zoom()
        self._surface.widget.document().contentsChanged.connect(self._refresh_layout)  # type: ignore[attr-defined]

    @property
    def session(self) -> EditorSession:
        return self._session

    @property
    def zoom_level(self) -> int:
        return self._zoom

    def start(self) -> None:
        self._session.start()
        self._refresh_layout()

    def open_document(self, document_id: str) -> None:
        self._run_coroutine(self._session.controller.load_document(document_id))

    async def aclose(self) -> None:
        await self._session.aclose()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _build_actions(self) -> None:
        toolbar = QToolBar("Document", self)
        self.addToolBar(toolbar)
        self._save_action = self._add_action(toolbar, "Save", QKeySequence.StandardKey.Save, self._on_save)
        self._branch_action = self._add_action(
            toolbar, "Save as New Version", "Ctrl+Shift+S", self._on_save_as_new_version
        )
        toolbar.addSeparator()
        self._add_action(toolbar, "Zoom In", QKeySequence.StandardKey.ZoomIn, self._on_zoom_in)
        self._add_action(toolbar, "Zoom Out", QKeySequence.StandardKey.ZoomOut, self._on_zoom_out)

    def _add_action(self, toolbar: QToolBar, text: str, shortcut: Any, handler: Any) -> QAction:
        action = QAction(text, self)
        action.setShortcut(QKeySequence(shortcut))
        action.triggered.connect(handler)  # type: ignore[attr-defined]
        toolbar.addAction(action)
        return action

    def _on_save(self) -> None:
        self._run_save(self._session.controller.save())

    def _on_save_as_new_version(self) -> None:
        self._run_save(self._session.controller.save_as_new_version())

    def _on_zoom_in(self) -> None:
        self._zoom = zoom_in(self._zoom)
        self._apply_zoom()

    def _on_zoom_out(self) -> None:
        self._zoom = zoom_out(self._zoom)
        self._apply_zoom()

    def _apply_zoom(self) -> None:
        font = self._surface.widget.font()
        font.setPointSizeF(_BASE_FONT_POINT_SIZE * self._zoom / 100.0)
        self._surface.widget.setFont(font)
        self._refresh_layout()

    def _refresh_layout(self) -> None:
        if not self._settings.page_mode:
            return
        self._session.update_page_layout(self._surface.content_height(), self._zoom)

    def _run_save(self, coro: Coroutine[Any, Any, SaveOutcome]) -> None:
        self._save_action.setEnabled(False)
        self._branch_action.setEnabled(False)

        async def _guarded() -> None:
            try:
                await coro
            finally:
                self._save_action.setEnabled(True)
                self._branch_action.setEnabled(True)

        self._run_coroutine(_guarded())

    def _run_coroutine(self, coro: Coroutine[Any, Any, Any]) -> None:
        loop = asyncio.get_event_loop()
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Event bus wiring
    # ------------------------------------------------------------------
    def _subscribe(self) -> None:
        bus = self._session.event_bus
        bus.subscribe(SaveStatusChanged, self._on_save_status)
        bus.subscribe(AutoSaveStatusChanged, self._on_autosave_status)
        bus.subscribe(PageLayoutChanged, self._on_page_layout)
        bus.subscribe(SelectionPublished, self._on_selection)
        bus.subscribe(DocumentBound, self._on_document_bound)
        bus.subscribe(NoticePosted, self._on_notice)

    def _on_save_status(self, event: SaveStatusChanged) -> None:
        self._save_label.setText(format_save_status(event.status, event.message))

    def _on_autosave_status(self, event: AutoSaveStatusChanged) -> None:
        label = format_save_status(event.status, event.message)
        self._autosave_label.setText(f"Autosave: {label}" if label else "")

    def _on_page_layout(self, event: PageLayoutChanged) -> None:
        suffix = "" if event.page_count == 1 else "s"
        self._page_label.setText(f"{event.page_count} page{suffix} · {int(event.zoom_level)}%")

    def _on_selection(self, event: SelectionPublished) -> None:
        length = len(event.text or "")
        self._selection_label.setText(f"{length} selected" if length else "")

    def _on_document_bound(self, event: DocumentBound) -> None:
        self.setWindowTitle(f"{event.title} - Worxspace")

    def _on_notice(self, event: NoticePosted) -> None:
        if event.blocking:
            QMessageBox.warning(self, "Worxspace", event.message)
        else:
            self.statusBar().showMessage(event.message, 5000)

    def closeEvent(self, event: Any) -> None:  # noqa: N802 - Qt override
        _LOGGER.debug("Editor window closing")
        self._session.tracker.unbind()
        super().closeEvent(event)
