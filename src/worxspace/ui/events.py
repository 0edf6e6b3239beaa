"""Event bus infrastructure for decoupled editor/sync communication.

Controllers publish what happened (a document was bound, saved, branched, a
save failed) and the window, status bar and tests subscribe without holding
references to the controllers themselves.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

# Type variable for event types
E = TypeVar("E", bound="Event")

# Handler type: a callable that takes an event and returns None
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system.

    Example::

        @dataclass(slots=True)
        class DocumentBound(Event):
            document_id: str
            version: int
    """

    pass


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Document Events
# =============================================================================


@dataclass(slots=True)
class ActiveDocumentChanged(Event):
    """Emitted when the workspace's active document identity changes.

    Attributes:
        document_id: The newly bound document, or None when unbound.
        previous_id: The document that was bound before, if any.
    """

    document_id: str | None
    previous_id: str | None = None


@dataclass(slots=True)
class DocumentBound(Event):
    """Emitted after the editor controller binds a document to the surface.

    Attributes:
        document_id: The identifier of the bound version.
        project_id: The owning project.
        version: The version number of the bound record.
        title: The display title of the bound record.
        content_pushed: Whether the stored content was written into the surface.
    """

    document_id: str
    project_id: str
    version: int
    title: str
    content_pushed: bool


@dataclass(slots=True)
class DocumentSaved(Event):
    """Emitted when a version is saved in place.

    Attributes:
        document_id: The identifier of the saved version.
        version: Its (unchanged) version number.
        modified_at: ISO timestamp of the save.
        autosave: True when the save came from the autosave scheduler.
    """

    document_id: str
    version: int
    modified_at: str
    autosave: bool = False


@dataclass(slots=True)
class VersionCreated(Event):
    """Emitted when a new version is branched from a parent.

    Attributes:
        document_id: The identifier of the new version.
        parent_id: The identifier of the version it was branched from.
        version: The allocated version number.
        title: The derived display title.
    """

    document_id: str
    parent_id: str
    version: int
    title: str


@dataclass(slots=True)
class SaveFailed(Event):
    """Emitted when a save or branch could not be completed.

    Attributes:
        document_id: The document the operation targeted.
        reason: Failure category (``persistence``, ``not_found``,
                ``validation`` or ``in_progress``).
        message: Human-readable failure description.
        autosave: True when the failure came from the autosave scheduler.
    """

    document_id: str
    reason: str
    message: str
    autosave: bool = False


# =============================================================================
# Editor state Events
# =============================================================================


@dataclass(slots=True)
class SelectionPublished(Event):
    """Emitted when the debounced selection snapshot is published.

    Attributes:
        text: Trimmed plain-text selection, or None when nothing is selected.
        html: Formatted selection markup, if available.
        selection_range: ``(start, end)`` offsets, or None.
    """

    text: str | None
    html: str | None
    selection_range: tuple[int, int] | None


_QUIET_EVENT_TYPES.add(SelectionPublished)


@dataclass(slots=True)
class SaveStatusChanged(Event):
    """Emitted when the explicit-save status indicator changes.

    Attributes:
        document_id: The document the status refers to, if any.
        status: One of ``idle``, ``saving``, ``saved`` or ``error``.
        message: Optional detail (error text for ``error``).
    """

    document_id: str | None
    status: str
    message: str | None = None


@dataclass(slots=True)
class AutoSaveStatusChanged(Event):
    """Emitted when the non-blocking autosave indicator changes.

    Attributes:
        document_id: The document being autosaved, if any.
        status: One of ``idle``, ``saving``, ``saved`` or ``error``.
        message: Optional detail (error text for ``error``).
    """

    document_id: str | None
    status: str
    message: str | None = None


@dataclass(slots=True)
class PageLayoutChanged(Event):
    """Emitted when the page-mode layout is recomputed.

    Attributes:
        page_count: Number of visual pages.
        total_height: Height of the paginated canvas in pixels.
        zoom_level: Zoom percentage the layout was computed for.
    """

    page_count: int
    total_height: float
    zoom_level: float


_QUIET_EVENT_TYPES.add(PageLayoutChanged)


# =============================================================================
# UI Events
# =============================================================================


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a notice should be shown to the user.

    Attributes:
        message: The notice text to display to the user.
        blocking: True for notices that require acknowledgement
                  (missing documents); False for transient ones.
    """

    message: str
    blocking: bool = False


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus for decoupled communication.

    Handlers are stored as weak references where possible to prevent memory
    leaks. Handlers run synchronously in registration order; a handler that
    raises is logged and the remaining handlers still run.

    Thread Safety:
        This implementation is NOT thread-safe. All operations should be
        performed from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Args:
            event_type: The class of events to subscribe to.
            handler: A callable that will be invoked with the event.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove a previously registered handler.

        Safe to call even if the handler was never subscribed.
        """
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast an event to all registered handlers."""
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead: list[_HandlerRef] = []

        # Iterate over a snapshot so handlers may (un)subscribe while running
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of registered handlers.

        Args:
            event_type: If provided, return count for that event type only.
        """
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Wrapper for handler references supporting both weak and strong refs.

    Bound methods are held through :class:`WeakMethod` so subscribers are
    cleaned up once their owner is collected; plain functions and lambdas are
    held strongly.
    """

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        """Create a handler reference, using weak refs where possible."""
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass

        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        """Return the handler, or None if it was garbage collected."""
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    # Core infrastructure
    "Event",
    "EventBus",
    "Handler",
    # Document events
    "ActiveDocumentChanged",
    "DocumentBound",
    "DocumentSaved",
    "VersionCreated",
    "SaveFailed",
    # Editor state events
    "SelectionPublished",
    "SaveStatusChanged",
    "AutoSaveStatusChanged",
    "PageLayoutChanged",
    # UI events
    "NoticePosted",
]
