"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Callable

from worxspace.editor.document_model import Document, DocumentPatch
from worxspace.services.document_storage import InMemoryDocumentRepository
from worxspace.services.errors import PersistenceError


class FakeTimerHandle:
    """Handle returned by :class:`FakeScheduler`."""

    def __init__(self, when: float, order: int, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self.when = when
        self.order = order
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock with ``call_later`` semantics for deterministic debounce tests.

    Example:
        scheduler = FakeScheduler()
        debouncer = Debouncer(callback, 0.15, scheduler=scheduler)
        debouncer.trigger()
        scheduler.advance(0.15)
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[FakeTimerHandle] = []
        self._order = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now + max(0.0, delay), next(self._order), callback, args)
        self._handles.append(handle)
        return handle

    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in time order."""

        target = self.now + seconds + 1e-9
        while True:
            due = [handle for handle in self._handles if not handle.cancelled and handle.when <= target]
            if not due:
                break
            handle = min(due, key=lambda item: (item.when, item.order))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self.now = target - 1e-9
        self._handles = [handle for handle in self._handles if not handle.cancelled]

    def advance_ms(self, milliseconds: float) -> None:
        self.advance(milliseconds / 1000.0)


class GatedRepository(InMemoryDocumentRepository):
    """In-memory repository whose writes can be held open or made to fail.

    ``save_gate`` starts open; clear it to keep ``save_in_place`` suspended
    until the test sets it again. ``fail_saves`` makes the next N in-place
    saves raise :class:`PersistenceError`.
    """

    def __init__(self, documents: tuple[Document, ...] = ()) -> None:
        super().__init__(documents)
        self.save_gate = asyncio.Event()
        self.save_gate.set()
        self.branch_gate = asyncio.Event()
        self.branch_gate.set()
        self.load_gates: dict[str, asyncio.Event] = {}
        self.fail_saves = 0
        self.fail_branches = 0
        self.save_attempts = 0
        self.saved_contents: list[str] = []

    async def load_document(self, document_id: str) -> Document:
        gate = self.load_gates.get(document_id)
        if gate is not None:
            await gate.wait()
        return await super().load_document(document_id)

    async def save_in_place(self, document_id: str, patch: DocumentPatch) -> Document:
        self.save_attempts += 1
        await self.save_gate.wait()
        if self.fail_saves > 0:
            self.fail_saves -= 1
            raise PersistenceError("disk unavailable", document_id=document_id)
        document = await super().save_in_place(document_id, patch)
        self.saved_contents.append(document.content)
        return document

    async def create_version(self, project_id: str, parent_id: str, content: str, *, version: int) -> Document:
        await self.branch_gate.wait()
        if self.fail_branches > 0:
            self.fail_branches -= 1
            raise PersistenceError("disk unavailable", document_id=parent_id)
        return await super().create_version(project_id, parent_id, content, version=version)


class EventRecorder:
    """Collects events published on an :class:`EventBus`."""

    def __init__(self, bus: Any, *event_types: type) -> None:
        self.events: list[Any] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


async def spin(iterations: int = 10) -> None:
    """Yield to the event loop so started tasks reach their next await."""

    for _ in range(iterations):
        await asyncio.sleep(0)
