"""Document persistence: the repository contract plus memory and JSON backends."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Protocol

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..editor.document_model import (
    Document,
    DocumentMetadata,
    DocumentPatch,
    generate_document_id,
)
from .errors import NotFoundError, PersistenceError, ValidationError, VersionConflictError

__all__ = [
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "JsonDocumentRepository",
    "MAX_TITLE_LENGTH",
    "format_version_title",
    "parse_version_from_title",
    "validate_base_title",
]

LOGGER = logging.getLogger(__name__)
MAX_TITLE_LENGTH = 200
_STORE_VERSION = 1
_VERSION_SUFFIX_RE = re.compile(r"\s+v(\d+)$", re.IGNORECASE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_base_title(base_title: str) -> str:
    """Trim and sanitize a lineage title, raising :class:`ValidationError` if unusable."""

    if base_title is None or not str(base_title).strip():
        raise ValidationError("Document title cannot be empty.")
    sanitized = re.sub(r"[<>]", "", str(base_title).strip())
    if not sanitized:
        raise ValidationError("Document title cannot be empty.")
    if len(sanitized) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Document title cannot exceed {MAX_TITLE_LENGTH} characters.")
    return sanitized


def format_version_title(base_title: str, version: int) -> str:
    return f"{base_title} v{version}"


def parse_version_from_title(title: str) -> tuple[str, int | None]:
    """Split ``"Plan v3"`` into ``("Plan", 3)``; titles without a suffix return ``None``."""

    match = _VERSION_SUFFIX_RE.search(title)
    if match is None:
        return title, None
    return title[: match.start()].strip(), int(match.group(1))


class DocumentRepository(Protocol):
    """Persistence collaborator used by :class:`~worxspace.services.version_store.VersionStore`."""

    async def load_document(self, document_id: str) -> Document:
        ...

    async def save_in_place(self, document_id: str, patch: DocumentPatch) -> Document:
        ...

    async def create_version(
        self,
        project_id: str,
        parent_id: str,
        content: str,
        *,
        version: int,
    ) -> Document:
        ...

    async def list_versions(self, project_id: str, base_title: str) -> list[Document]:
        ...

    async def create_document(
        self,
        project_id: str,
        base_title: str,
        content: str = "",
        *,
        template_id: str | None = None,
        tags: Iterable[str] = (),
    ) -> Document:
        ...

    async def delete_document(self, document_id: str) -> None:
        ...

    async def list_documents(self, project_id: str) -> list[Document]:
        ...


class InMemoryDocumentRepository:
    """Repository keeping records in a dict; every read returns a copy.

    Each mutation builds the next record table, hands it to :meth:`_persist`
    and only then swaps it in, so a failed write leaves the previous state
    untouched. Subclasses override :meth:`_persist` / :meth:`_load_records`.
    """

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._records: Dict[str, Document] | None = None
        self._seed = [document.copy() for document in documents]
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def load_document(self, document_id: str) -> Document:
        records = await self._records_view()
        document = records.get(document_id)
        if document is None:
            raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)
        return document.copy()

    async def list_versions(self, project_id: str, base_title: str) -> list[Document]:
        records = await self._records_view()
        versions = [
            doc.copy()
            for doc in records.values()
            if doc.project_id == project_id and doc.base_title == base_title
        ]
        versions.sort(key=lambda doc: doc.version)
        return versions

    async def list_documents(self, project_id: str) -> list[Document]:
        records = await self._records_view()
        documents = [doc.copy() for doc in records.values() if doc.project_id == project_id]
        documents.sort(key=lambda doc: doc.modified_at, reverse=True)
        return documents

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
        title = validate_base_title(base_title)
        now = _utcnow()
        document = Document(
            id=generate_document_id(),
            project_id=project_id,
            base_title=title,
            title=format_version_title(title, 1),
            version=1,
            parent_version_id=None,
            content=content,
            created_at=now,
            modified_at=now,
            metadata=DocumentMetadata.for_content(content, template_id=template_id, tags=tuple(tags)),
        )
        async with self._write_lock:
            records = dict(await self._records_view())
            records[document.id] = document
            await self._commit(records)
        LOGGER.info("Document created: id=%s title=%s project=%s", document.id, document.title, project_id)
        return document.copy()

    async def save_in_place(self, document_id: str, patch: DocumentPatch) -> Document:
        async with self._write_lock:
            records = dict(await self._records_view())
            existing = records.get(document_id)
            if existing is None:
                raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)
            updated = existing
            if patch.content is not None:
                updated = updated.with_content(patch.content)
            if patch.title is not None:
                updated = replace(updated, title=patch.title, modified_at=_utcnow())
            if updated is existing:
                updated = replace(existing, modified_at=_utcnow())
            records[document_id] = updated
            await self._commit(records)
        LOGGER.debug(
            "Document updated in place: id=%s version=%s content_changed=%s",
            document_id,
            updated.version,
            patch.content is not None and patch.content != existing.content,
        )
        return updated.copy()

    async def create_version(
        self,
        project_id: str,
        parent_id: str,
        content: str,
        *,
        version: int,
    ) -> Document:
        async with self._write_lock:
            records = dict(await self._records_view())
            parent = records.get(parent_id)
            if parent is None:
                raise NotFoundError(f"Source document not found: {parent_id}", document_id=parent_id)
            if parent.project_id != project_id:
                raise ValidationError(
                    f"Document {parent_id} does not belong to project {project_id}",
                    document_id=parent_id,
                )
            taken = any(
                doc.project_id == project_id
                and doc.base_title == parent.base_title
                and doc.version == version
                for doc in records.values()
            )
            if taken:
                raise VersionConflictError(
                    f'Version {version} of "{parent.base_title}" already exists',
                    document_id=parent_id,
                    version=version,
                )
            now = _utcnow()
            document = Document(
                id=generate_document_id(),
                project_id=project_id,
                base_title=parent.base_title,
                title=format_version_title(parent.base_title, version),
                version=version,
                parent_version_id=parent.id,
                content=content,
                created_at=now,
                modified_at=now,
                metadata=DocumentMetadata.for_content(
                    content,
                    template_id=parent.metadata.template_id,
                    tags=parent.metadata.tags,
                ),
            )
            records[document.id] = document
            await self._commit(records)
        return document.copy()

    async def delete_document(self, document_id: str) -> None:
        async with self._write_lock:
            records = dict(await self._records_view())
            removed = records.pop(document_id, None)
            if removed is None:
                raise NotFoundError(f"Document not found: {document_id}", document_id=document_id)
            await self._commit(records)
        LOGGER.info("Document deleted: id=%s title=%s", removed.id, removed.title)

    # ------------------------------------------------------------------
    # Storage hooks
    # ------------------------------------------------------------------
    async def _records_view(self) -> Dict[str, Document]:
        if self._records is None:
            loaded = await self._load_records()
            for document in self._seed:
                loaded.setdefault(document.id, document)
            self._seed = []
            self._records = loaded
        return self._records

    async def _commit(self, records: Dict[str, Document]) -> None:
        await self._persist(records)
        self._records = records

    async def _load_records(self) -> Dict[str, Document]:
        return {}

    async def _persist(self, records: Mapping[str, Document]) -> None:
        del records


class JsonDocumentRepository(InMemoryDocumentRepository):
    """Repository persisted as a single JSON file with atomic replace writes."""

    def __init__(
        self,
        path: Path | str,
        *,
        write_retries: int = 3,
        retry_min_seconds: float = 0.05,
        retry_max_seconds: float = 1.0,
    ) -> None:
        super().__init__()
        self._path = Path(path).expanduser()
        self._write_retries = max(1, int(write_retries))
        self._retry_min_seconds = retry_min_seconds
        self._retry_max_seconds = retry_max_seconds

    @property
    def path(self) -> Path:
        return self._path

    async def _load_records(self) -> Dict[str, Document]:
        return await asyncio.to_thread(self._read_records)

    async def _persist(self, records: Mapping[str, Document]) -> None:
        payload = {
            "version": _STORE_VERSION,
            "documents": [doc.as_dict() for doc in records.values()],
        }
        body = json.dumps(payload, indent=2, sort_keys=True)
        try:
            await asyncio.to_thread(self._write_with_retry, body)
        except OSError as exc:
            raise PersistenceError(f"Failed to write document store {self._path}: {exc}") from exc

    def _retrying(self) -> Retrying:
        return Retrying(
            reraise=True,
            stop=stop_after_attempt(self._write_retries),
            wait=wait_exponential(multiplier=self._retry_min_seconds, max=self._retry_max_seconds),
            retry=retry_if_exception_type(OSError),
        )

    def _write_with_retry(self, body: str) -> None:
        for attempt in self._retrying():
            with attempt:
                self._write_body(body)

    def _write_body(self, body: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)

    def _read_records(self) -> Dict[str, Document]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Document store {self._path} is unreadable: {exc}") from exc
        if not isinstance(data, Mapping):
            raise PersistenceError(f"Document store {self._path} has an unexpected layout")
        records: Dict[str, Document] = {}
        for entry in data.get("documents") or ():
            document = _coerce_document(entry)
            if document is not None:
                records[document.id] = document
        return records


def _coerce_document(entry: Any) -> Document | None:
    if not isinstance(entry, Mapping):
        return None
    try:
        return Document.from_dict(entry)
    except (KeyError, TypeError, ValueError) as exc:
        LOGGER.warning("Skipping malformed document record: %s", exc)
        return None
