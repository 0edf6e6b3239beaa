"""Tests for version lineage management."""

from __future__ import annotations

import asyncio

import pytest

from worxspace.editor.document_model import DocumentPatch
from worxspace.services.document_storage import InMemoryDocumentRepository
from worxspace.services.errors import NotFoundError, ValidationError, VersionConflictError
from worxspace.services.version_store import VersionStore


@pytest.fixture
def store() -> VersionStore:
    return VersionStore(InMemoryDocumentRepository())


@pytest.mark.asyncio
async def test_save_then_reload(store: VersionStore) -> None:
    document = await store.create_document("proj", "Greeting", "Hello")

    await store.save_in_place(document.id, DocumentPatch(content="Hello world"))
    reloaded = await store.load(document.id)

    assert reloaded.content == "Hello world"
    assert reloaded.version == 1


@pytest.mark.asyncio
async def test_branch_copies_content_and_links_parent(store: VersionStore) -> None:
    root = await store.create_document("proj", "Plan", "Draft")

    branched = await store.branch("proj", root.id, "Draft")

    assert branched.version == 2
    assert branched.parent_version_id == root.id
    assert branched.content == "Draft"
    assert branched.title == "Plan v2"
    assert branched.base_title == "Plan"
    assert branched.id != root.id
    assert (await store.load(root.id)).content == "Draft"


@pytest.mark.asyncio
async def test_branch_never_mutates_parent(store: VersionStore) -> None:
    root = await store.create_document("proj", "Plan", "Draft")
    before = await store.load(root.id)

    branched = await store.branch("proj", root.id, "Edited draft")

    after = await store.load(root.id)
    assert after.content == "Draft"
    assert after.modified_at == before.modified_at
    assert branched.content == "Edited draft"


@pytest.mark.asyncio
async def test_lineage_versions_are_gap_free(store: VersionStore) -> None:
    head = await store.create_document("proj", "Plan", "v1")
    for index in range(2, 6):
        head = await store.branch("proj", head.id, f"v{index}")

    versions = await store.list_versions("proj", "Plan")
    by_id = {doc.id: doc for doc in versions}

    assert [doc.version for doc in versions] == [1, 2, 3, 4, 5]
    for doc in versions[1:]:
        assert by_id[doc.parent_version_id].version == doc.version - 1
    assert (await store.latest_version("proj", "Plan")).id == head.id
    assert await store.has_multiple_versions("proj", "Plan")


@pytest.mark.asyncio
async def test_branching_a_stale_parent_is_rejected(store: VersionStore) -> None:
    root = await store.create_document("proj", "Plan", "Draft")
    await store.branch("proj", root.id, "first")

    with pytest.raises(VersionConflictError):
        await store.branch("proj", root.id, "second")

    assert [doc.version for doc in await store.list_versions("proj", "Plan")] == [1, 2]


@pytest.mark.asyncio
async def test_concurrent_branches_never_share_a_version(store: VersionStore) -> None:
    root = await store.create_document("proj", "Plan", "Draft")

    results = await asyncio.gather(
        store.branch("proj", root.id, "left"),
        store.branch("proj", root.id, "right"),
        return_exceptions=True,
    )

    created = [result for result in results if not isinstance(result, BaseException)]
    failures = [result for result in results if isinstance(result, BaseException)]
    assert len(created) == 1
    assert len(failures) == 1 and isinstance(failures[0], VersionConflictError)
    assert [doc.version for doc in await store.list_versions("proj", "Plan")] == [1, 2]


@pytest.mark.asyncio
async def test_branch_errors(store: VersionStore) -> None:
    root = await store.create_document("proj", "Plan", "Draft")

    with pytest.raises(NotFoundError):
        await store.branch("proj", "missing", "x")
    with pytest.raises(ValidationError):
        await store.branch("other-project", root.id, "x")


@pytest.mark.asyncio
async def test_duplicate_lineage_titles_are_rejected(store: VersionStore) -> None:
    await store.create_document("proj", "Plan", "a")

    with pytest.raises(ValidationError):
        await store.create_document("proj", "Plan", "b")
    other = await store.create_document("other", "Plan", "c")

    assert other.version == 1


@pytest.mark.asyncio
async def test_lineage_queries(store: VersionStore) -> None:
    plan = await store.create_document("proj", "Plan", "a")
    await store.create_document("proj", "Notes", "b")
    await store.branch("proj", plan.id, "a2")

    assert await store.base_titles("proj") == ["Plan", "Notes"]
    assert not await store.has_multiple_versions("proj", "Notes")
    assert await store.latest_version("proj", "Missing") is None


@pytest.mark.asyncio
async def test_delete(store: VersionStore) -> None:
    document = await store.create_document("proj", "Plan", "a")

    await store.delete(document.id)

    with pytest.raises(NotFoundError):
        await store.load(document.id)
