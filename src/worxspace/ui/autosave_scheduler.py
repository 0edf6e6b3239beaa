"""Debounced in-place persistence of surface edits."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from ..editor.document_model import Document, DocumentPatch
from ..editor.surface import EditingSurface, Subscription
from ..services.errors import NotFoundError, SaveInProgressError, WorxspaceError
from ..services.version_store import VersionStore
from ..utils.debounce import Debouncer, TimerScheduler
from .events import DocumentSaved, SaveFailed
from .save_guard import HOLDER_AUTOSAVE, SaveGuard
from .workspace_state import SaveStatus, WorkspaceState

__all__ = ["AutoSaveScheduler", "BindingSource", "DEFAULT_AUTOSAVE_DELAY_MS"]

LOGGER = logging.getLogger(__name__)
DEFAULT_AUTOSAVE_DELAY_MS = 500
DEFAULT_STATUS_RESET_MS = 2000


class BindingSource(Protocol):
    """Read access to the controller-owned document binding."""

    @property
    def current_document(self) -> Document | None:
        ...

    @property
    def binding_id(self) -> int:
        ...

    def accept_saved_document(self, document: Document, *, binding_id: int) -> bool:
        ...

    def on_binding_changing(self, listener: Callable[[], None]) -> Subscription:
        ...


@dataclass(slots=True, frozen=True)
class _PendingWrite:
    document: Document
    content: str
    binding_id: int


class AutoSaveScheduler:
    """Coalesces bursts of content changes into single in-place saves.

    The scheduler never allocates versions and never changes the binding; it
    reads the bound document through ``binding`` each time a save starts. Edits
    still waiting for the quiet period when the binding leaves a document are
    written to that document at once. A failed save is reported through the
    autosave indicator and retried when the next content change arrives. When
    an explicit save holds the document the attempt is deferred by another
    quiet period.
    """

    def __init__(
        self,
        surface: EditingSurface,
        version_store: VersionStore,
        binding: BindingSource,
        *,
        guard: SaveGuard,
        state: WorkspaceState,
        delay_ms: int = DEFAULT_AUTOSAVE_DELAY_MS,
        status_reset_ms: int = DEFAULT_STATUS_RESET_MS,
        enabled: bool = True,
        scheduler: TimerScheduler | None = None,
    ) -> None:
        self._surface = surface
        self._store = version_store
        self._binding = binding
        self._guard = guard
        self._state = state
        self._enabled = enabled
        self._debouncer = Debouncer(self._on_quiet, delay_ms / 1000.0, scheduler=scheduler, name="autosave")
        self._status_reset = Debouncer(
            self._reset_status,
            status_reset_ms / 1000.0,
            scheduler=scheduler,
            name="autosave-status-reset",
        )
        self._subscription: Subscription | None = None
        self._rebind_subscription: Subscription | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._rerun = False
        self._last_error: str | None = None
        self._save_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self._surface.on_content_changed(self._handle_content_changed)
        self._rebind_subscription = self._binding.on_binding_changing(self._handle_binding_changing)
        LOGGER.debug("Autosave started (delay=%.3fs)", self._debouncer.delay_seconds)

    def stop(self) -> None:
        """Stop listening; an in-flight save is allowed to finish."""

        self._debouncer.cancel()
        self._status_reset.cancel()
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
        rebind, self._rebind_subscription = self._rebind_subscription, None
        if rebind is not None:
            rebind.unsubscribe()

    async def aclose(self) -> None:
        self.stop()
        await self.wait_idle()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        if not self._enabled:
            self._debouncer.cancel()

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def save_count(self) -> int:
        return self._save_count

    async def wait_idle(self) -> None:
        """Wait for the in-flight save (and any queued rerun) to finish."""

        while self._inflight is not None and not self._inflight.done():
            await asyncio.shield(self._inflight)

    async def flush(self) -> None:
        """Run a pending save now instead of waiting for the quiet period."""

        if self._debouncer.cancel():
            self._on_quiet()
        await self.wait_idle()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------
    def _handle_content_changed(self) -> None:
        if not self._enabled:
            return
        document = self._binding.current_document
        if document is None:
            return
        self._status_reset.cancel()
        self._state.set_autosave_state(SaveStatus.SAVING, document_id=document.id)
        self._debouncer.trigger()

    def _handle_binding_changing(self) -> None:
        """Write edits still waiting for the quiet period to the outgoing document."""

        if not (self._debouncer.pending or self._rerun):
            return
        self._debouncer.cancel()
        self._rerun = False
        document = self._binding.current_document
        if document is None:
            return
        content = self._surface.get_serialized_content()
        if content == document.content:
            self._state.set_autosave_state(SaveStatus.IDLE, document_id=document.id)
            return
        LOGGER.debug("Binding leaves %s with unsaved edits; saving them now", document.id)
        pending = _PendingWrite(document, content, self._binding.binding_id)
        loop = asyncio.get_running_loop()
        self._inflight = loop.create_task(self._run(after=self._inflight, pending=pending))

    def _on_quiet(self) -> None:
        if self.in_flight:
            self._rerun = True
            return
        loop = asyncio.get_running_loop()
        self._inflight = loop.create_task(self._run())

    async def _run(
        self,
        *,
        after: asyncio.Task[None] | None = None,
        pending: _PendingWrite | None = None,
    ) -> None:
        try:
            if after is not None and not after.done():
                await asyncio.wait([after])
            if pending is None:
                await self._save_current()
            else:
                while self._guard.is_held(pending.document.id):
                    await self._guard.wait_released(pending.document.id)
                await self._write(pending)
        finally:
            if self._rerun:
                self._rerun = False
                self._debouncer.trigger()

    async def _save_current(self) -> None:
        document = self._binding.current_document
        if document is None:
            return
        content = self._surface.get_serialized_content()
        if content == document.content:
            self._last_error = None
            self._state.set_autosave_state(SaveStatus.IDLE, document_id=document.id)
            return
        await self._write(_PendingWrite(document, content, self._binding.binding_id))

    async def _write(self, pending: _PendingWrite) -> None:
        document = pending.document
        try:
            with self._guard.hold(document.id, HOLDER_AUTOSAVE):
                saved = await self._store.save_in_place(document.id, DocumentPatch(content=pending.content))
        except SaveInProgressError:
            LOGGER.debug("Autosave deferred; %s is held by %s", document.id, self._guard.holder(document.id))
            self._debouncer.trigger()
            return
        except WorxspaceError as exc:
            self._last_error = str(exc)
            LOGGER.warning("Autosave of %s failed: %s", document.id, exc)
            self._state.set_autosave_state(SaveStatus.ERROR, document_id=document.id, message=str(exc))
            self._state.event_bus.publish(
                SaveFailed(
                    document_id=document.id,
                    reason="not_found" if isinstance(exc, NotFoundError) else "persistence",
                    message=str(exc),
                    autosave=True,
                )
            )
            return

        self._last_error = None
        self._save_count += 1
        applied = self._binding.accept_saved_document(saved, binding_id=pending.binding_id)
        self._state.event_bus.publish(
            DocumentSaved(
                document_id=saved.id,
                version=saved.version,
                modified_at=saved.modified_at.isoformat(),
                autosave=True,
            )
        )
        if applied:
            self._state.set_autosave_state(SaveStatus.SAVED, document_id=saved.id)
            self._status_reset.trigger()
        elif self._state.autosave_state().document_id == saved.id:
            self._state.set_autosave_state(SaveStatus.IDLE, document_id=saved.id)

    def _reset_status(self) -> None:
        current = self._state.autosave_state()
        if current.status is SaveStatus.SAVED:
            self._state.set_autosave_state(SaveStatus.IDLE, document_id=current.document_id)
