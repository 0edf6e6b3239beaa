"""Editing surface backed by a PySide6 ``QTextEdit``."""

from __future__ import annotations

import logging
from typing import Any

from PySide6.QtWidgets import QTextEdit, QWidget

from .document_model import SelectionRange, SelectionSnapshot
from .surface import Subscription, SurfaceListener

__all__ = ["QtTextSurface"]

LOGGER = logging.getLogger(__name__)
_PARAGRAPH_SEPARATOR = "\u2029"
_LINE_SEPARATOR = "\u2028"


class QtTextSurface:
    """Adapts a rich-text ``QTextEdit`` to the editing-surface contract.

    Content is exchanged as the widget's HTML. Loads through
    :meth:`set_serialized_content` run with signals blocked so they never
    count as user edits; selection listeners are notified afterwards because
    the caret has moved.
    """

    def __init__(self, editor: QTextEdit | None = None, parent: QWidget | None = None) -> None:
        self._editor = editor if editor is not None else QTextEdit(parent)
        self._editor.setAcceptRichText(True)
        self._selection_listeners: list[SurfaceListener] = []
        self._content_listeners: list[SurfaceListener] = []
        self._editor.textChanged.connect(self._handle_text_changed)  # type: ignore[attr-defined]
        self._editor.selectionChanged.connect(self._handle_selection_changed)  # type: ignore[attr-defined]

    @property
    def widget(self) -> QTextEdit:
        return self._editor

    @property
    def plain_text(self) -> str:
        return self._editor.toPlainText()

    def set_readonly(self, readonly: bool) -> None:
        self._editor.setReadOnly(bool(readonly))

    def is_readonly(self) -> bool:
        return bool(self._editor.isReadOnly())

    def content_height(self) -> float:
        """Measured height of the laid-out document in pixels."""

        return float(self._editor.document().size().height())

    # ------------------------------------------------------------------
    # EditingSurface protocol
    # ------------------------------------------------------------------
    def get_serialized_content(self) -> str:
        return self._editor.toHtml()

    def set_serialized_content(self, content: str) -> None:
        self._editor.blockSignals(True)
        try:
            self._editor.setHtml(content)
        finally:
            self._editor.blockSignals(False)
        self._emit(self._selection_listeners)

    def get_current_selection(self) -> SelectionSnapshot | None:
        cursor = self._editor.textCursor()
        if not cursor.hasSelection():
            return None
        raw = cursor.selectedText()
        text = raw.replace(_PARAGRAPH_SEPARATOR, "\n").replace(_LINE_SEPARATOR, "\n").strip()
        if not text:
            return None
        html = cursor.selection().toHtml()
        return SelectionSnapshot(
            text=text,
            html=html,
            range=SelectionRange(cursor.selectionStart(), cursor.selectionEnd()),
        )

    def on_selection_changed(self, listener: SurfaceListener) -> Subscription:
        return _subscribe(self._selection_listeners, listener)

    def on_content_changed(self, listener: SurfaceListener) -> Subscription:
        return _subscribe(self._content_listeners, listener)

    # ------------------------------------------------------------------
    # Qt signal handlers
    # ------------------------------------------------------------------
    def _handle_text_changed(self) -> None:
        self._emit(self._content_listeners)

    def _handle_selection_changed(self) -> None:
        self._emit(self._selection_listeners)

    @staticmethod
    def _emit(listeners: list[SurfaceListener]) -> None:
        for listener in list(listeners):
            try:
                listener()
            except Exception:
                LOGGER.exception("Surface listener %r failed", listener)


def _subscribe(listeners: list[Any], listener: SurfaceListener) -> Subscription:
    listeners.append(listener)

    def _detach() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return Subscription(_detach)
