"""Base exceptions for the domain layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import Snippet


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when an entity cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class NotAuthenticated(DomainError):
    """Raised when an operation requires a session and none is present."""


class StorageUnavailable(DomainError):
    """Raised when the local store cannot be opened or read."""


class StorageWriteFailed(DomainError):
    """Raised when a write to the local store fails."""


class RemoteReadFailed(DomainError):
    """Raised by the remote table when a select fails."""


class RemoteWriteFailed(DomainError):
    """Raised when a remote insert/update fails after the local write succeeded.

    The local mutation is already committed; ``snippet`` holds the record as
    it was saved locally (``None`` when raised by the remote table itself).
    """

    def __init__(self, message: str, snippet: Optional["Snippet"] = None) -> None:
        super().__init__(message)
        self.snippet = snippet


# Alias to keep a generic name for error type hints
Error = DomainError

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "NotAuthenticated",
    "StorageUnavailable",
    "StorageWriteFailed",
    "RemoteReadFailed",
    "RemoteWriteFailed",
    "Error",
]
