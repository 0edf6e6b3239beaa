"""Error taxonomy shared by the document storage and versioning layers."""

from __future__ import annotations

__all__ = [
    "WorxspaceError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "VersionConflictError",
    "SaveInProgressError",
]


class WorxspaceError(Exception):
    """Base class for recoverable errors raised by the workspace core."""

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.document_id = document_id


class NotFoundError(WorxspaceError):
    """Raised when a referenced document or version no longer exists."""


class PersistenceError(WorxspaceError):
    """Raised when the storage collaborator fails to read or write."""


class ValidationError(WorxspaceError):
    """Raised when input or lineage state is not acceptable."""


class VersionConflictError(ValidationError):
    """Raised when a branch would reuse a version number already in the lineage."""

    def __init__(
        self,
        message: str,
        *,
        document_id: str | None = None,
        version: int | None = None,
    ) -> None:
        super().__init__(message, document_id=document_id)
        self.version = version


class SaveInProgressError(WorxspaceError):
    """Raised when a save is requested while another one holds the document."""
