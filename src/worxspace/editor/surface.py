"""Editing-surface contract and a headless in-memory implementation.

The sync core only ever talks to a surface through :class:`EditingSurface`:
read or replace the serialized content, read the current selection and
subscribe to ``selection_changed`` / ``content_changed`` notifications.
:class:`BufferSurface` keeps the same behaviour without any widget toolkit so
controllers can be driven from tests and scripts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from html import escape
from typing import Callable, Protocol

from .document_model import SelectionRange, SelectionSnapshot, strip_markup

__all__ = [
    "BufferSurface",
    "EditingSurface",
    "SurfaceListener",
    "Subscription",
]

LOGGER = logging.getLogger(__name__)

SurfaceListener = Callable[[], None]


@dataclass(slots=True)
class Subscription:
    """Handle returned by surface subscriptions; ``unsubscribe`` is idempotent."""

    _detach: Callable[[], None] | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._detach is not None

    def unsubscribe(self) -> None:
        detach = self._detach
        if detach is None:
            return
        self._detach = None
        detach()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.unsubscribe()


class EditingSurface(Protocol):
    """Rich-text editing component observed and mutated by the sync core."""

    def get_serialized_content(self) -> str:
        ...

    def set_serialized_content(self, content: str) -> None:
        ...

    def get_current_selection(self) -> SelectionSnapshot | None:
        ...

    def on_selection_changed(self, listener: SurfaceListener) -> Subscription:
        ...

    def on_content_changed(self, listener: SurfaceListener) -> Subscription:
        ...


class BufferSurface:
    """In-memory surface holding HTML markup and plain-text selection offsets.

    Offsets index the plain-text projection of the markup (tags removed).
    Programmatic loads through :meth:`set_serialized_content` collapse the
    caret and notify selection listeners but never count as a content edit;
    :meth:`edit`, :meth:`type_text` and :meth:`delete_selection` model user
    input and notify content listeners first, then selection listeners.
    """

    def __init__(self, content: str = "", *, readonly: bool = False) -> None:
        self._markup = content
        self._selection = SelectionRange()
        self._readonly = readonly
        self._selection_listeners: list[SurfaceListener] = []
        self._content_listeners: list[SurfaceListener] = []
        self.set_calls: list[str] = []

    # ------------------------------------------------------------------
    # EditingSurface protocol
    # ------------------------------------------------------------------
    def get_serialized_content(self) -> str:
        return self._markup

    def set_serialized_content(self, content: str) -> None:
        self.set_calls.append(content)
        self._markup = content
        self._selection = SelectionRange()
        self._emit(self._selection_listeners)

    def get_current_selection(self) -> SelectionSnapshot | None:
        start, end = self._selection.as_tuple()
        if start == end:
            return None
        plain = self.plain_text
        text = plain[start:end].strip()
        if not text:
            return None
        html = self._markup[_markup_index(self._markup, start) : _markup_index(self._markup, end, end=True)]
        return SelectionSnapshot(text=text, html=html, range=SelectionRange(start, end))

    def on_selection_changed(self, listener: SurfaceListener) -> Subscription:
        return self._subscribe(self._selection_listeners, listener)

    def on_content_changed(self, listener: SurfaceListener) -> Subscription:
        return self._subscribe(self._content_listeners, listener)

    # ------------------------------------------------------------------
    # Simulated user input
    # ------------------------------------------------------------------
    @property
    def plain_text(self) -> str:
        return strip_markup(self._markup)

    @property
    def selection(self) -> SelectionRange:
        return self._selection

    @property
    def readonly(self) -> bool:
        return self._readonly

    def set_readonly(self, readonly: bool) -> None:
        self._readonly = bool(readonly)

    def listener_count(self) -> int:
        return len(self._selection_listeners) + len(self._content_listeners)

    def select(self, start: int, end: int) -> None:
        """Move the selection, clamped to the plain-text length."""

        length = len(self.plain_text)
        begin = max(0, min(int(start), length))
        finish = max(0, min(int(end), length))
        if finish < begin:
            begin, finish = finish, begin
        self._selection = SelectionRange(begin, finish)
        self._emit(self._selection_listeners)

    def edit(self, content: str) -> None:
        """Replace the whole markup as if the user had edited it."""

        if self._readonly:
            LOGGER.debug("Ignoring edit on read-only surface")
            return
        self._markup = content
        length = len(self.plain_text)
        caret = min(self._selection.end, length)
        self._selection = SelectionRange(caret, caret)
        self._emit(self._content_listeners)
        self._emit(self._selection_listeners)

    def type_text(self, text: str) -> None:
        """Insert ``text`` at the selection, replacing any selected characters."""

        if self._readonly:
            LOGGER.debug("Ignoring typing on read-only surface")
            return
        start, end = self._selection.as_tuple()
        begin = _markup_index(self._markup, start)
        finish = begin if start == end else _markup_index(self._markup, end, end=True)
        inserted = escape(text, quote=False)
        self._markup = self._markup[:begin] + inserted + self._markup[finish:]
        caret = start + len(strip_markup(inserted))
        self._selection = SelectionRange(caret, caret)
        self._emit(self._content_listeners)
        self._emit(self._selection_listeners)

    def delete_selection(self) -> None:
        if self._selection.collapsed:
            return
        self.type_text("")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _subscribe(self, listeners: list[SurfaceListener], listener: SurfaceListener) -> Subscription:
        listeners.append(listener)

        def _detach() -> None:
            try:
                listeners.remove(listener)
            except ValueError:
                pass

        return Subscription(_detach)

    @staticmethod
    def _emit(listeners: list[SurfaceListener]) -> None:
        for listener in list(listeners):
            try:
                listener()
            except Exception:
                LOGGER.exception("Surface listener %r failed", listener)


def _markup_index(markup: str, plain_offset: int, *, end: bool = False) -> int:
    """Map a plain-text offset onto an index into ``markup``.

    Start offsets land on the next text character (after any opening tags);
    end offsets land right after the previous one (before closing tags).
    """

    count = 0
    in_tag = False
    if end and plain_offset > 0:
        for index, char in enumerate(markup):
            if in_tag:
                if char == ">":
                    in_tag = False
                continue
            if char == "<":
                in_tag = True
                continue
            count += 1
            if count == plain_offset:
                return index + 1
        return len(markup)
    for index, char in enumerate(markup):
        if in_tag:
            if char == ">":
                in_tag = False
            continue
        if char == "<":
            in_tag = True
            continue
        if count == plain_offset:
            return index
        count += 1
    return len(markup)
