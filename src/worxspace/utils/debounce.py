"""Trailing debounce timers bound to an event-loop style scheduler."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

__all__ = ["Debouncer", "TimerHandle", "TimerScheduler"]

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by :meth:`TimerScheduler.call_later`."""

    def cancel(self) -> None:
        ...


class TimerScheduler(Protocol):
    """Anything exposing ``call_later`` with asyncio loop semantics."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class Debouncer:
    """Owns a single timer handle and fires ``callback`` after a quiet period.

    Every :meth:`trigger` cancels the outstanding handle before scheduling a
    new one, so only the last trigger of a burst results in a call. The handle
    is cleared before the callback runs; a callback that raises is logged and
    the next trigger still schedules normally.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay_seconds: float,
        *,
        scheduler: TimerScheduler | None = None,
        name: str = "debounce",
    ) -> None:
        self._callback = callback
        self._delay = max(0.0, float(delay_seconds))
        self._scheduler = scheduler
        self._name = name
        self._handle: TimerHandle | None = None

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)start the quiet-period timer."""

        self.cancel()
        scheduler = self._resolve_scheduler()
        self._handle = scheduler.call_later(self._delay, self._fire)

    def cancel(self) -> bool:
        """Cancel the pending timer, returning ``True`` when one was active."""

        handle = self._handle
        if handle is None:
            return False
        self._handle = None
        handle.cancel()
        return True

    def flush(self) -> bool:
        """Run the pending callback immediately, if any."""

        if not self.cancel():
            return False
        self._invoke()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._invoke()

    def _invoke(self) -> None:
        try:
            self._callback()
        except Exception:
            LOGGER.exception("Debounced callback %s failed", self._name)

    def _resolve_scheduler(self) -> TimerScheduler:
        if self._scheduler is not None:
            return self._scheduler
        return asyncio.get_running_loop()
