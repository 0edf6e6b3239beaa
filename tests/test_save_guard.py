"""Tests for the single-writer save guard."""

from __future__ import annotations

import asyncio

import pytest

from worxspace.services.errors import SaveInProgressError
from worxspace.ui.save_guard import HOLDER_AUTOSAVE, HOLDER_SAVE, SaveGuard


def test_second_acquire_is_rejected() -> None:
    guard = SaveGuard()

    token = guard.try_acquire("doc", HOLDER_SAVE)

    assert token is not None
    assert guard.try_acquire("doc", HOLDER_AUTOSAVE) is None
    assert guard.holder("doc") == HOLDER_SAVE
    with pytest.raises(SaveInProgressError) as excinfo:
        guard.acquire("doc", HOLDER_AUTOSAVE)
    assert excinfo.value.document_id == "doc"


def test_documents_are_independent() -> None:
    guard = SaveGuard()

    assert guard.try_acquire("a", HOLDER_SAVE) is not None
    assert guard.try_acquire("b", HOLDER_SAVE) is not None


def test_stale_tokens_are_ignored() -> None:
    guard = SaveGuard()
    first = guard.acquire("doc", HOLDER_SAVE)
    assert guard.release(first)
    second = guard.acquire("doc", HOLDER_AUTOSAVE)

    assert not guard.release(first)
    assert guard.is_held("doc")
    assert guard.release(second)
    assert not guard.is_held("doc")


def test_hold_releases_on_error() -> None:
    guard = SaveGuard()

    with pytest.raises(RuntimeError):
        with guard.hold("doc", HOLDER_SAVE):
            assert guard.is_held("doc")
            raise RuntimeError("write failed")

    assert not guard.is_held("doc")


@pytest.mark.asyncio
async def test_wait_released_resumes_after_release() -> None:
    guard = SaveGuard()
    token = guard.acquire("doc", HOLDER_AUTOSAVE)

    waiter = asyncio.ensure_future(guard.wait_released("doc"))
    await asyncio.sleep(0)
    assert not waiter.done()

    guard.release(token)
    await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.asyncio
async def test_wait_released_returns_when_free() -> None:
    guard = SaveGuard()

    await asyncio.wait_for(guard.wait_released("doc"), timeout=1)
