"""Core library exposing domain models, settings and exceptions."""

from .settings import Settings, get_settings
from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    NotAuthenticated,
    StorageUnavailable,
    StorageWriteFailed,
    RemoteReadFailed,
    RemoteWriteFailed,
    Error,
)
from .models import (
    LANGUAGES,
    ListResult,
    MergePolicy,
    Snippet,
    SnippetCreate,
    SnippetOrigin,
    SnippetUpdate,
    SyncOutcome,
    SyncStatus,
)

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "NotAuthenticated",
    "StorageUnavailable",
    "StorageWriteFailed",
    "RemoteReadFailed",
    "RemoteWriteFailed",
    "Error",
    "LANGUAGES",
    "ListResult",
    "MergePolicy",
    "Snippet",
    "SnippetCreate",
    "SnippetOrigin",
    "SnippetUpdate",
    "SyncOutcome",
    "SyncStatus",
]
