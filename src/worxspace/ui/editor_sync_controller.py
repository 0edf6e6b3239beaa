"""Binds the editing surface to the active document and mediates explicit saves."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..editor.document_model import Document, DocumentPatch
from ..editor.surface import EditingSurface, Subscription
from ..services.errors import (
    NotFoundError,
    PersistenceError,
    SaveInProgressError,
    ValidationError,
    VersionConflictError,
    WorxspaceError,
)
from ..services.version_store import VersionStore
from ..utils.debounce import Debouncer, TimerScheduler
from .events import (
    DocumentBound,
    DocumentSaved,
    EventBus,
    NoticePosted,
    SaveFailed,
    VersionCreated,
)
from .save_guard import HOLDER_AUTOSAVE, HOLDER_BRANCH, HOLDER_SAVE, SaveGuard
from .workspace_state import SaveStatus, WorkspaceState

__all__ = [
    "BRANCH_FROM_LATEST_NOTICE",
    "DEFAULT_STATUS_RESET_MS",
    "EditorSyncController",
    "RebindListener",
    "SaveOutcome",
    "SaveResult",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_STATUS_RESET_MS = 2000
BRANCH_FROM_LATEST_NOTICE = (
    "Save as New Version only branches from the latest version of a document. "
    "Open the latest version and save from there."
)

RebindListener = Callable[[], None]


class SaveResult(Enum):
    """How an explicit save or branch request ended."""

    SAVED = "saved"
    CREATED = "created"
    NO_DOCUMENT = "no_document"
    IN_PROGRESS = "in_progress"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"
    SUPERSEDED = "superseded"


_FAILURE_REASONS = {
    SaveResult.NOT_FOUND: "not_found",
    SaveResult.INVALID: "validation",
}


@dataclass(slots=True, frozen=True)
class SaveOutcome:
    """Status value returned to the UI layer instead of raising."""

    result: SaveResult
    document: Document | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.result in (SaveResult.SAVED, SaveResult.CREATED)


class EditorSyncController:
    """Keeps the surface consistent with the bound document record.

    Binding is by identity: re-binding the same document id never touches the
    surface, so in-progress edits survive. Binding a different id pushes the
    stored content only when it differs from what the surface already shows.
    Explicit saves hold a :class:`SaveGuard` token for the bound id; results
    that complete after the binding moved on update only the store. Rebind
    listeners run before the binding leaves a document, while the surface
    still shows that document's content.
    """

    def __init__(
        self,
        surface: EditingSurface,
        version_store: VersionStore,
        *,
        state: WorkspaceState | None = None,
        event_bus: EventBus | None = None,
        guard: SaveGuard | None = None,
        status_reset_ms: int = DEFAULT_STATUS_RESET_MS,
        scheduler: TimerScheduler | None = None,
    ) -> None:
        self._surface = surface
        self._store = version_store
        self._state = state or WorkspaceState(event_bus)
        self._bus = event_bus or self._state.event_bus
        self._guard = guard or SaveGuard()
        self._state.claim_document_binding(self)
        self._document: Document | None = None
        self._binding_id = 0
        self._load_sequence = 0
        self._rebind_listeners: list[RebindListener] = []
        self._status_reset = Debouncer(
            self._reset_save_status,
            status_reset_ms / 1000.0,
            scheduler=scheduler,
            name="save-status-reset",
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def surface(self) -> EditingSurface:
        return self._surface

    @property
    def state(self) -> WorkspaceState:
        return self._state

    @property
    def guard(self) -> SaveGuard:
        return self._guard

    @property
    def current_document(self) -> Document | None:
        document = self._document
        return document.copy() if document is not None else None

    @property
    def binding_id(self) -> int:
        """Counter bumped whenever the bound document identity changes."""

        return self._binding_id

    @property
    def is_saving(self) -> bool:
        document = self._document
        if document is None:
            return False
        return self._guard.holder(document.id) in (HOLDER_SAVE, HOLDER_BRANCH)

    def is_title_editable(self) -> bool:
        """Titles of versioned documents are read-only."""

        return self._document is None

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------
    def on_binding_changing(self, listener: RebindListener) -> Subscription:
        """Call ``listener`` before the bound document is replaced or unbound."""

        self._rebind_listeners.append(listener)

        def _detach() -> None:
            if listener in self._rebind_listeners:
                self._rebind_listeners.remove(listener)

        return Subscription(_detach)

    def bind_document(self, document: Document) -> bool:
        """Bind ``document``; returns ``True`` when its content was pushed into the surface."""

        current = self._document
        if current is not None and current.id == document.id:
            LOGGER.debug("Document %s already bound; surface left untouched", document.id)
            return False

        if current is not None:
            self._notify_binding_changing()
        pushed = False
        if self._surface.get_serialized_content() != document.content:
            self._surface.set_serialized_content(document.content)
            pushed = True
        self._apply_binding(document)
        self._bus.publish(
            DocumentBound(
                document_id=document.id,
                project_id=document.project_id,
                version=document.version,
                title=document.title,
                content_pushed=pushed,
            )
        )
        LOGGER.info("Bound %s (v%s, pushed=%s)", document.title, document.version, pushed)
        return pushed

    def unbind(self) -> None:
        if self._document is None:
            return
        self._notify_binding_changing()
        self._document = None
        self._binding_id += 1
        self._status_reset.cancel()
        self._state.set_active_document(None, owner=self)
        self._state.set_save_state(SaveStatus.IDLE)

    async def load_document(self, document_id: str) -> Document | None:
        """Load ``document_id`` from the store and bind it.

        Only the most recent request may bind; earlier loads that complete
        later are discarded.
        """

        self._load_sequence += 1
        sequence = self._load_sequence
        try:
            document = await self._store.load(document_id)
        except NotFoundError as exc:
            LOGGER.warning("Document %s could not be loaded: %s", document_id, exc)
            self._bus.publish(NoticePosted(message=f"Document not found: {document_id}", blocking=True))
            return None
        except PersistenceError as exc:
            LOGGER.warning("Document %s could not be loaded: %s", document_id, exc)
            self._bus.publish(NoticePosted(message=f"Unable to load document: {exc}"))
            return None
        if sequence != self._load_sequence:
            LOGGER.debug("Discarding stale load of %s", document_id)
            return None
        self.bind_document(document)
        return document

    def accept_saved_document(self, document: Document, *, binding_id: int) -> bool:
        """Refresh the held record after a save if the binding is unchanged."""

        current = self._document
        if binding_id != self._binding_id or current is None or current.id != document.id:
            LOGGER.debug(
                "Ignoring save result for %s; binding changed since the save started",
                document.id,
            )
            return False
        self._document = document.copy()
        self._state.set_active_document(self._document, owner=self)
        return True

    # ------------------------------------------------------------------
    # Explicit saves
    # ------------------------------------------------------------------
    async def save(self) -> SaveOutcome:
        """Persist the surface content into the bound version."""

        document = self._document
        if document is None:
            return SaveOutcome(SaveResult.NO_DOCUMENT, message="No document is open")
        binding_id = self._binding_id
        content = self._surface.get_serialized_content()
        if not await self._wait_for_autosave(document.id, binding_id):
            return self._abandon(document.id)

        try:
            with self._guard.hold(document.id, HOLDER_SAVE):
                self._state.set_save_state(SaveStatus.SAVING, document_id=document.id)
                saved = await self._store.save_in_place(document.id, DocumentPatch(content=content))
        except SaveInProgressError:
            return self._reject_in_progress(document.id)
        except WorxspaceError as exc:
            return self._report_failure(document.id, exc, binding_id=binding_id)

        applied = self.accept_saved_document(saved, binding_id=binding_id)
        self._bus.publish(
            DocumentSaved(
                document_id=saved.id,
                version=saved.version,
                modified_at=saved.modified_at.isoformat(),
            )
        )
        if applied:
            self._mark_saved(saved.id)
        return SaveOutcome(SaveResult.SAVED, document=saved)

    async def save_as_new_version(self) -> SaveOutcome:
        """Branch the surface content into ``version + 1`` and rebind to it."""

        document = self._document
        if document is None:
            return SaveOutcome(SaveResult.NO_DOCUMENT, message="No document is open")
        binding_id = self._binding_id
        content = self._surface.get_serialized_content()
        if not await self._wait_for_autosave(document.id, binding_id):
            return self._abandon(document.id)

        try:
            with self._guard.hold(document.id, HOLDER_BRANCH):
                self._state.set_save_state(SaveStatus.SAVING, document_id=document.id)
                created = await self._store.branch(document.project_id, document.id, content)
        except SaveInProgressError:
            return self._reject_in_progress(document.id)
        except WorxspaceError as exc:
            return self._report_failure(document.id, exc, binding_id=binding_id)

        self._bus.publish(
            VersionCreated(
                document_id=created.id,
                parent_id=document.id,
                version=created.version,
                title=created.title,
            )
        )
        if binding_id == self._binding_id:
            # The surface already shows the branched content; only the identity moves.
            self._apply_binding(created)
            self._bus.publish(
                DocumentBound(
                    document_id=created.id,
                    project_id=created.project_id,
                    version=created.version,
                    title=created.title,
                    content_pushed=False,
                )
            )
            self._mark_saved(created.id)
        else:
            LOGGER.debug("Binding changed during branch; %s not rebound", created.id)
        return SaveOutcome(SaveResult.CREATED, document=created)

    async def versions(self) -> list[Document]:
        """List every version in the bound document's lineage."""

        document = self._document
        if document is None:
            return []
        return await self._store.list_versions(document.project_id, document.base_title)

    def dispose(self) -> None:
        self._status_reset.cancel()
        self.unbind()
        self._state.release_document_binding(self)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _apply_binding(self, document: Document) -> None:
        self._document = document.copy()
        self._binding_id += 1
        self._status_reset.cancel()
        self._state.set_active_document(self._document, owner=self)
        self._state.set_save_state(SaveStatus.IDLE, document_id=document.id)

    def _notify_binding_changing(self) -> None:
        for listener in list(self._rebind_listeners):
            try:
                listener()
            except Exception:
                LOGGER.exception("Rebind listener %r failed", listener)

    async def _wait_for_autosave(self, document_id: str, binding_id: int) -> bool:
        """Wait out an autosave write; ``False`` when the binding moved meanwhile."""

        # Autosave writes the same record; wait for it instead of rejecting.
        if self._guard.holder(document_id) == HOLDER_AUTOSAVE:
            await self._guard.wait_released(document_id)
        return binding_id == self._binding_id

    def _abandon(self, document_id: str) -> SaveOutcome:
        LOGGER.debug("Binding moved off %s before its save could start; nothing written", document_id)
        return SaveOutcome(SaveResult.SUPERSEDED, message="Another document was opened before the save started")

    def _reject_in_progress(self, document_id: str) -> SaveOutcome:
        message = "A save is already in progress"
        LOGGER.debug("Rejected concurrent save for %s", document_id)
        self._bus.publish(
            SaveFailed(document_id=document_id, reason=SaveResult.IN_PROGRESS.value, message=message)
        )
        return SaveOutcome(SaveResult.IN_PROGRESS, message=message)

    def _report_failure(self, document_id: str, exc: WorxspaceError, *, binding_id: int) -> SaveOutcome:
        if isinstance(exc, NotFoundError):
            result = SaveResult.NOT_FOUND
        elif isinstance(exc, ValidationError):
            result = SaveResult.INVALID
        else:
            result = SaveResult.FAILED
        reason = _FAILURE_REASONS.get(result, "persistence")
        message = str(exc)
        notice = message
        conflict = isinstance(exc, VersionConflictError)
        if conflict:
            # Branching allocates parent.version + 1, so only the lineage head can branch.
            notice = f"{message}. {BRANCH_FROM_LATEST_NOTICE}"
        LOGGER.warning("Save of %s failed (%s): %s", document_id, reason, message)
        if binding_id == self._binding_id:
            self._status_reset.cancel()
            self._state.set_save_state(SaveStatus.ERROR, document_id=document_id, message=message)
        self._bus.publish(SaveFailed(document_id=document_id, reason=reason, message=message))
        self._bus.publish(NoticePosted(message=notice, blocking=result is SaveResult.NOT_FOUND or conflict))
        return SaveOutcome(result, message=message)

    def _mark_saved(self, document_id: str) -> None:
        self._state.set_save_state(SaveStatus.SAVED, document_id=document_id)
        self._status_reset.trigger()

    def _reset_save_status(self) -> None:
        if self._state.save_state().status is SaveStatus.SAVED:
            self._state.set_save_state(SaveStatus.IDLE, document_id=self._state.active_document_id())
