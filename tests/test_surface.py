"""Tests for the headless buffer surface."""

from __future__ import annotations

from worxspace.editor.document_model import SelectionRange
from worxspace.editor.surface import BufferSurface


def _recorder(surface: BufferSurface) -> list[str]:
    events: list[str] = []
    surface.on_content_changed(lambda: events.append("content"))
    surface.on_selection_changed(lambda: events.append("selection"))
    return events


def test_programmatic_load_is_not_a_content_edit() -> None:
    surface = BufferSurface("<p>old</p>")
    events = _recorder(surface)
    surface.select(0, 3)
    events.clear()

    surface.set_serialized_content("<p>new text</p>")

    assert events == ["selection"]
    assert surface.get_serialized_content() == "<p>new text</p>"
    assert surface.selection == SelectionRange(0, 0)
    assert surface.set_calls == ["<p>new text</p>"]


def test_selection_reports_trimmed_text_markup_and_range() -> None:
    surface = BufferSurface("<p>Hello <b>world</b></p>")

    surface.select(6, 11)
    snapshot = surface.get_current_selection()

    assert snapshot is not None
    assert snapshot.text == "world"
    assert snapshot.html is not None and snapshot.html.startswith("world")
    assert snapshot.range == SelectionRange(6, 11)


def test_select_clamps_and_orders_offsets() -> None:
    surface = BufferSurface("abc")

    surface.select(10, -4)

    assert surface.selection == SelectionRange(0, 3)


def test_collapsed_or_whitespace_selection_is_none() -> None:
    surface = BufferSurface("a   b")

    surface.select(2, 2)
    assert surface.get_current_selection() is None

    surface.select(1, 4)
    assert surface.get_current_selection() is None


def test_typing_replaces_selection_and_notifies_content_first() -> None:
    surface = BufferSurface("<p>Hello world</p>")
    surface.select(6, 11)
    events = _recorder(surface)

    surface.type_text("there & more")

    assert surface.get_serialized_content() == "<p>Hello there &amp; more</p>"
    assert surface.plain_text == "Hello there &amp; more"
    assert events == ["content", "selection"]
    assert surface.selection.collapsed


def test_delete_selection_removes_text() -> None:
    surface = BufferSurface("<p>abcdef</p>")
    surface.select(1, 3)

    surface.delete_selection()

    assert surface.get_serialized_content() == "<p>adef</p>"
    assert surface.selection == SelectionRange(1, 1)


def test_readonly_surface_ignores_user_edits() -> None:
    surface = BufferSurface("<p>locked</p>", readonly=True)
    events = _recorder(surface)

    surface.type_text("x")
    surface.edit("<p>changed</p>")

    assert surface.get_serialized_content() == "<p>locked</p>"
    assert events == []


def test_unsubscribe_is_idempotent() -> None:
    surface = BufferSurface()
    calls: list[int] = []
    subscription = surface.on_content_changed(lambda: calls.append(1))

    subscription.unsubscribe()
    subscription.unsubscribe()
    surface.edit("x")

    assert calls == []
    assert not subscription.active
    assert surface.listener_count() == 0


def test_failing_listener_does_not_block_others() -> None:
    surface = BufferSurface()
    calls: list[str] = []

    def _broken() -> None:
        raise RuntimeError("listener failure")

    surface.on_content_changed(_broken)
    surface.on_content_changed(lambda: calls.append("ok"))
    surface.edit("x")

    assert calls == ["ok"]
