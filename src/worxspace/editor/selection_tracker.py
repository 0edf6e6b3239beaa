"""Debounced selection tracking on top of an editing surface."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from ..utils.debounce import Debouncer, TimerScheduler
from .document_model import SelectionSnapshot
from .surface import EditingSurface, Subscription

__all__ = ["SelectionTracker", "SelectionPublisher", "DEFAULT_SELECTION_DEBOUNCE_MS"]

LOGGER = logging.getLogger(__name__)
DEFAULT_SELECTION_DEBOUNCE_MS = 150

SelectionPublisher = Callable[[SelectionSnapshot], None]


class SelectionTracker:
    """Turns high-frequency surface events into throttled selection snapshots.

    Both selection and content changes restart a trailing debounce; once the
    surface has been quiet for the debounce window the selection is read and
    handed to ``publisher``. Binding publishes once immediately. Unbinding
    cancels any pending publish.
    """

    def __init__(
        self,
        publisher: SelectionPublisher,
        *,
        debounce_ms: int = DEFAULT_SELECTION_DEBOUNCE_MS,
        scheduler: TimerScheduler | None = None,
    ) -> None:
        self._publisher = publisher
        self._surface: EditingSurface | None = None
        self._subscriptions: list[Subscription] = []
        self._debouncer = Debouncer(
            self._publish_current,
            debounce_ms / 1000.0,
            scheduler=scheduler,
            name="selection",
        )
        self._last_published: SelectionSnapshot | None = None

    @property
    def bound(self) -> bool:
        return self._surface is not None

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def last_published(self) -> SelectionSnapshot | None:
        return self._last_published

    def bind(self, surface: EditingSurface) -> None:
        """Attach to ``surface`` and publish its current selection right away."""

        if self._surface is surface:
            return
        self.unbind()
        self._surface = surface
        try:
            self._subscriptions = [
                surface.on_selection_changed(self._handle_surface_event),
                surface.on_content_changed(self._handle_surface_event),
            ]
        except Exception:
            self.unbind()
            raise
        LOGGER.debug("Selection tracker bound to %s", type(surface).__name__)
        try:
            self._publish_current()
        except Exception:
            LOGGER.exception("Initial selection publish failed; tracker stays bound")

    def unbind(self) -> None:
        """Detach from the surface; a pending publish never fires afterwards."""

        self._debouncer.cancel()
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.unsubscribe()
        if self._surface is not None:
            LOGGER.debug("Selection tracker unbound")
        self._surface = None

    @contextmanager
    def bound_to(self, surface: EditingSurface) -> Iterator["SelectionTracker"]:
        """Scope a binding so it is released on every exit path."""

        self.bind(surface)
        try:
            yield self
        finally:
            self.unbind()

    def flush(self) -> bool:
        """Publish immediately if a debounced publish is pending."""

        return self._debouncer.flush()

    def _handle_surface_event(self) -> None:
        if self._surface is None:
            return
        self._debouncer.trigger()

    def _publish_current(self) -> None:
        surface = self._surface
        if surface is None:
            return
        try:
            selection = surface.get_current_selection()
        except Exception:
            LOGGER.warning("Unable to read the surface selection", exc_info=True)
            return
        if selection is None or selection.is_empty:
            snapshot = SelectionSnapshot.empty()
        else:
            snapshot = selection
        self._last_published = snapshot
        self._publisher(snapshot)
