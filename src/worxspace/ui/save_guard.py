"""Single-writer save tokens keyed by document identity."""

from __future__ import annotations

import asyncio
import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

from ..services.errors import SaveInProgressError

__all__ = [
    "HOLDER_AUTOSAVE",
    "HOLDER_BRANCH",
    "HOLDER_SAVE",
    "SaveGuard",
    "SaveToken",
]

LOGGER = logging.getLogger(__name__)

HOLDER_SAVE = "save"
HOLDER_BRANCH = "branch"
HOLDER_AUTOSAVE = "autosave"


@dataclass(slots=True, frozen=True)
class SaveToken:
    """Proof of holding the write slot for ``document_id``."""

    document_id: str
    holder: str
    token_id: int


class SaveGuard:
    """At most one persistence call per document identity at a time.

    Concurrent acquisition is rejected rather than queued; callers decide
    whether to report "save in progress" or to wait for the release with
    :meth:`wait_released`.
    """

    def __init__(self) -> None:
        self._tokens: Dict[str, SaveToken] = {}
        self._released: Dict[str, asyncio.Event] = {}
        self._counter = itertools.count(1)

    def try_acquire(self, document_id: str, holder: str) -> SaveToken | None:
        if document_id in self._tokens:
            return None
        token = SaveToken(document_id=document_id, holder=holder, token_id=next(self._counter))
        self._tokens[document_id] = token
        LOGGER.debug("Save slot for %s acquired by %s", document_id, holder)
        return token

    def acquire(self, document_id: str, holder: str) -> SaveToken:
        token = self.try_acquire(document_id, holder)
        if token is None:
            current = self._tokens[document_id]
            raise SaveInProgressError(
                f"A {current.holder} is already in progress for this document",
                document_id=document_id,
            )
        return token

    def release(self, token: SaveToken) -> bool:
        """Release ``token``; stale or foreign tokens are ignored."""

        current = self._tokens.get(token.document_id)
        if current is None or current.token_id != token.token_id:
            return False
        del self._tokens[token.document_id]
        event = self._released.pop(token.document_id, None)
        if event is not None:
            event.set()
        LOGGER.debug("Save slot for %s released by %s", token.document_id, token.holder)
        return True

    def is_held(self, document_id: str) -> bool:
        return document_id in self._tokens

    def holder(self, document_id: str) -> str | None:
        token = self._tokens.get(document_id)
        return token.holder if token is not None else None

    async def wait_released(self, document_id: str) -> None:
        """Wait until the current holder of ``document_id`` releases it."""

        if document_id not in self._tokens:
            return
        event = self._released.get(document_id)
        if event is None:
            event = asyncio.Event()
            self._released[document_id] = event
        await event.wait()

    @contextmanager
    def hold(self, document_id: str, holder: str) -> Iterator[SaveToken]:
        """Acquire for the duration of a block, releasing on every exit path."""

        token = self.acquire(document_id, holder)
        try:
            yield token
        finally:
            self.release(token)
