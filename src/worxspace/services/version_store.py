"""Version lineage management on top of a :class:`DocumentRepository`."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable

from ..editor.document_model import Document, DocumentPatch
from .document_storage import DocumentRepository
from .errors import ValidationError

__all__ = ["VersionStore"]

LOGGER = logging.getLogger(__name__)


class VersionStore:
    """Save-in-place vs. branch-as-new-version over an append-only lineage.

    ``branch`` holds a per-lineage :class:`asyncio.Lock` around the
    read-parent / allocate / write sequence. The repository re-checks that the
    allocated number is still free, so branching from anything but the lineage
    head is rejected with :class:`~worxspace.services.errors.VersionConflictError`
    instead of producing a duplicate or a gap.
    """

    def __init__(self, repository: DocumentRepository) -> None:
        self._repository = repository
        self._lineage_locks: Dict[tuple[str, str], asyncio.Lock] = {}

    @property
    def repository(self) -> DocumentRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def load(self, document_id: str) -> Document:
        return await self._repository.load_document(document_id)

    async def list_versions(self, project_id: str, base_title: str) -> list[Document]:
        """Return every version of a lineage in ascending version order."""

        versions = await self._repository.list_versions(project_id, base_title)
        return sorted(versions, key=lambda doc: doc.version)

    async def latest_version(self, project_id: str, base_title: str) -> Document | None:
        versions = await self.list_versions(project_id, base_title)
        return versions[-1] if versions else None

    async def has_multiple_versions(self, project_id: str, base_title: str) -> bool:
        versions = await self.list_versions(project_id, base_title)
        return len(versions) > 1

    async def base_titles(self, project_id: str) -> list[str]:
        """Distinct lineage titles in the project, most recently modified first."""

        documents = await self._repository.list_documents(project_id)
        seen: list[str] = []
        for document in documents:
            if document.base_title not in seen:
                seen.append(document.base_title)
        return seen

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create_document(
        self,
        project_id: str,
        base_title: str,
        content: str = "",
        *,
        template_id: str | None = None,
        tags: Iterable[str] = (),
    ) -> Document:
        """Start a new lineage at version 1."""

        existing = await self._repository.list_versions(project_id, base_title.strip())
        if existing:
            raise ValidationError(f'A document titled "{base_title.strip()}" already exists')
        return await self._repository.create_document(
            project_id,
            base_title,
            content,
            template_id=template_id,
            tags=tags,
        )

    async def save_in_place(self, document_id: str, patch: DocumentPatch) -> Document:
        """Overwrite content and/or title of one version; never allocates a version."""

        document = await self._repository.save_in_place(document_id, patch)
        LOGGER.debug("Saved %s in place (version %s)", document_id, document.version)
        return document

    async def branch(self, project_id: str, parent_document_id: str, content: str) -> Document:
        """Create ``parent.version + 1`` carrying ``content``; the parent is untouched."""

        parent = await self._repository.load_document(parent_document_id)
        if parent.project_id != project_id:
            raise ValidationError(
                f"Document {parent_document_id} does not belong to project {project_id}",
                document_id=parent_document_id,
            )
        lock = self._lineage_lock(parent.lineage_key)
        async with lock:
            # Re-read under the lock; the parent may have been deleted meanwhile.
            parent = await self._repository.load_document(parent_document_id)
            next_version = parent.version + 1
            document = await self._repository.create_version(
                project_id,
                parent.id,
                content,
                version=next_version,
            )
        LOGGER.info(
            "Branched %s v%s -> v%s (%s)",
            parent.base_title,
            parent.version,
            document.version,
            document.id,
        )
        return document

    async def delete(self, document_id: str) -> None:
        await self._repository.delete_document(document_id)

    def _lineage_lock(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._lineage_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._lineage_locks[key] = lock
        return lock
