"""Dataclasses representing versioned documents and selection snapshots."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "Document",
    "DocumentMetadata",
    "DocumentPatch",
    "SelectionRange",
    "SelectionSnapshot",
    "count_words",
    "count_chars",
    "strip_markup",
    "generate_document_id",
]

_TAG_RE = re.compile(r"<[^>]*>")


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def generate_document_id() -> str:
    return uuid.uuid4().hex


def strip_markup(content: str, *, separator: str = "") -> str:
    """Remove HTML tags from ``content``."""

    if not content:
        return ""
    return _TAG_RE.sub(separator, content)


def count_words(content: str) -> int:
    text = strip_markup(content, separator=" ")
    return len([word for word in text.split() if word.strip()])


def count_chars(content: str) -> int:
    return len(strip_markup(content))


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return _utcnow()


@dataclass(slots=True)
class DocumentMetadata:
    """Derived counters and labels attached to a document record."""

    word_count: int = 0
    char_count: int = 0
    template_id: str | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def for_content(
        cls,
        content: str,
        *,
        template_id: str | None = None,
        tags: tuple[str, ...] = (),
    ) -> "DocumentMetadata":
        return cls(
            word_count=count_words(content),
            char_count=count_chars(content),
            template_id=template_id,
            tags=tuple(tags),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "word_count": self.word_count,
            "char_count": self.char_count,
            "template_id": self.template_id,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "DocumentMetadata":
        if not payload:
            return cls()
        return cls(
            word_count=int(payload.get("word_count") or 0),
            char_count=int(payload.get("char_count") or 0),
            template_id=payload.get("template_id"),
            tags=tuple(str(tag) for tag in payload.get("tags") or ()),
        )


@dataclass(slots=True)
class Document:
    """One version of a document lineage.

    Every version has its own ``id``; versions of the same lineage share
    ``project_id`` and ``base_title``. ``parent_version_id`` is ``None`` only for
    the version-1 root.
    """

    id: str
    project_id: str
    base_title: str
    title: str
    version: int = 1
    parent_version_id: Optional[str] = None
    content: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    modified_at: datetime = field(default_factory=_utcnow)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)

    @property
    def is_root(self) -> bool:
        return self.parent_version_id is None

    @property
    def lineage_key(self) -> tuple[str, str]:
        return (self.project_id, self.base_title)

    def with_content(self, content: str, *, modified_at: datetime | None = None) -> "Document":
        """Return a copy carrying ``content`` and refreshed counters."""

        metadata = DocumentMetadata.for_content(
            content,
            template_id=self.metadata.template_id,
            tags=self.metadata.tags,
        )
        return replace(
            self,
            content=content,
            metadata=metadata,
            modified_at=modified_at or _utcnow(),
        )

    def copy(self) -> "Document":
        return replace(self, metadata=replace(self.metadata))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "base_title": self.base_title,
            "title": self.title,
            "version": self.version,
            "parent_version_id": self.parent_version_id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
            "metadata": self.metadata.as_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Document":
        return cls(
            id=str(payload["id"]),
            project_id=str(payload["project_id"]),
            base_title=str(payload["base_title"]),
            title=str(payload.get("title") or payload["base_title"]),
            version=int(payload.get("version") or 1),
            parent_version_id=payload.get("parent_version_id"),
            content=str(payload.get("content") or ""),
            created_at=_parse_timestamp(payload.get("created_at")),
            modified_at=_parse_timestamp(payload.get("modified_at")),
            metadata=DocumentMetadata.from_dict(payload.get("metadata")),
        )


@dataclass(slots=True, frozen=True)
class DocumentPatch:
    """Partial update applied by an in-place save."""

    content: str | None = None
    title: str | None = None

    def is_empty(self) -> bool:
        return self.content is None and self.title is None


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """Offsets into the surface's document model."""

    start: int = 0
    end: int = 0

    @property
    def collapsed(self) -> bool:
        return self.start == self.end

    def as_tuple(self) -> tuple[int, int]:
        """Return the selection as a tuple for serialization."""

        return (self.start, self.end)

    def as_dict(self) -> Dict[str, int]:
        return {"from": self.start, "to": self.end}


@dataclass(slots=True, frozen=True)
class SelectionSnapshot:
    """Point-in-time view of the surface selection.

    All fields are ``None`` when nothing is selected.
    """

    text: str | None = None
    html: str | None = None
    range: SelectionRange | None = None

    @classmethod
    def empty(cls) -> "SelectionSnapshot":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.text

    def as_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "html": self.html,
            "range": self.range.as_dict() if self.range is not None else None,
        }
