"""Tests for editor session wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers import EventRecorder, FakeScheduler
from worxspace.editor.surface import BufferSurface
from worxspace.services.document_storage import InMemoryDocumentRepository, JsonDocumentRepository
from worxspace.services.settings import Settings
from worxspace.ui.bootstrap import create_editor_session, create_repository
from worxspace.ui.events import EventBus, PageLayoutChanged, SelectionPublished
from worxspace.ui.workspace_state import get_workspace_state


def test_create_repository_uses_settings(tmp_path: Path) -> None:
    settings = Settings(store_path=str(tmp_path / "docs.json"), write_retries=5)

    repository = create_repository(settings)

    assert isinstance(repository, JsonDocumentRepository)
    assert repository.path == tmp_path / "docs.json"


@pytest.mark.asyncio
async def test_session_wires_selection_autosave_and_layout(scheduler: FakeScheduler) -> None:
    surface = BufferSurface()
    session = create_editor_session(
        surface,
        Settings(autosave_delay_ms=500, selection_debounce_ms=150),
        repository=InMemoryDocumentRepository(),
        scheduler=scheduler,
    )
    selections = EventRecorder(session.event_bus, SelectionPublished)
    layouts = EventRecorder(session.event_bus, PageLayoutChanged)
    document = await session.version_store.create_document("proj", "Plan", "<p>Hello world</p>")

    session.start()
    await session.controller.load_document(document.id)
    surface.select(0, 5)
    scheduler.advance_ms(150)

    assert session.state.selection().text == "Hello"
    assert selections.events[0].text is None

    surface.edit("<p>Hello there world</p>")
    scheduler.advance_ms(500)
    await session.autosave.wait_idle()

    assert (await session.version_store.load(document.id)).content == "<p>Hello there world</p>"

    layout = session.update_page_layout(2000)
    assert layout.page_count == 3
    assert session.state.page_layout() == layout
    assert len(layouts.events) == 1

    await session.aclose()
    assert surface.listener_count() == 0
    assert session.state.active_document_id() is None


def test_autosave_respects_settings(scheduler: FakeScheduler) -> None:
    session = create_editor_session(
        BufferSurface(),
        Settings(autosave_enabled=False),
        repository=InMemoryDocumentRepository(),
        scheduler=scheduler,
    )

    assert not session.autosave.enabled


@pytest.mark.asyncio
async def test_session_joins_and_releases_the_process_wide_state(scheduler: FakeScheduler) -> None:
    session = create_editor_session(
        BufferSurface(),
        repository=InMemoryDocumentRepository(),
        scheduler=scheduler,
    )

    assert get_workspace_state() is session.state
    assert session.event_bus is session.state.event_bus

    await session.aclose()

    assert get_workspace_state() is not session.state


def test_explicit_bus_installs_a_fresh_state(scheduler: FakeScheduler) -> None:
    bus = EventBus()

    session = create_editor_session(
        BufferSurface(),
        repository=InMemoryDocumentRepository(),
        event_bus=bus,
        scheduler=scheduler,
    )

    assert session.state.event_bus is bus
    assert get_workspace_state() is session.state


@pytest.mark.asyncio
async def test_closing_the_session_writes_pending_edits(scheduler: FakeScheduler) -> None:
    surface = BufferSurface()
    session = create_editor_session(
        surface,
        Settings(autosave_delay_ms=500),
        repository=InMemoryDocumentRepository(),
        scheduler=scheduler,
    )
    document = await session.version_store.create_document("proj", "Plan", "<p>draft</p>")
    session.start()
    await session.controller.load_document(document.id)

    surface.edit("<p>final draft</p>")
    await session.aclose()

    assert (await session.version_store.load(document.id)).content == "<p>final draft</p>"
