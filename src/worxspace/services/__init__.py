"""Service layer helpers (storage, versioning, settings)."""

from .document_storage import (
    DocumentRepository,
    InMemoryDocumentRepository,
    JsonDocumentRepository,
    format_version_title,
    parse_version_from_title,
    validate_base_title,
)
from .errors import (
    NotFoundError,
    PersistenceError,
    SaveInProgressError,
    ValidationError,
    VersionConflictError,
    WorxspaceError,
)
from .version_store import VersionStore

__all__ = [
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "JsonDocumentRepository",
    "NotFoundError",
    "PersistenceError",
    "SaveInProgressError",
    "ValidationError",
    "VersionConflictError",
    "VersionStore",
    "WorxspaceError",
    "format_version_title",
    "parse_version_from_title",
    "validate_base_title",
]
