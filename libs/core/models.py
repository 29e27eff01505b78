"""Pydantic models representing core domain entities."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

# Languages offered by the editor. Informational only, the store accepts any
# language string.
LANGUAGES = [
    "JavaScript",
    "TypeScript",
    "Python",
    "Java",
    "C++",
    "Ruby",
    "Go",
    "Rust",
    "PHP",
    "HTML",
    "CSS",
    "SQL",
    "Shell",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe_tags(tags: List[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for tag in tags:
        if tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def _require_title(title: str) -> str:
    if not title.strip():
        raise ValueError("title must not be empty")
    return title


Title = Annotated[str, AfterValidator(_require_title)]
Tags = Annotated[List[str], AfterValidator(_dedupe_tags)]


class Snippet(BaseModel):
    """A user-owned piece of code with descriptive metadata."""

    id: str
    title: Title
    description: str = ""
    code: str = ""
    language: str = ""
    tags: Tags = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    user_id: str

    model_config = ConfigDict(extra="ignore")


class SnippetCreate(BaseModel):
    """Fields a caller may supply when creating a snippet.

    Store-managed fields (``id``, ``user_id`` and timestamps) are dropped if
    present in the input.
    """

    title: Title
    description: str = ""
    code: str = ""
    language: str = ""
    tags: Tags = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class SnippetUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied."""

    title: Optional[Title] = None
    description: Optional[str] = None
    code: Optional[str] = None
    language: Optional[str] = None
    tags: Optional[Tags] = None

    model_config = ConfigDict(extra="ignore")


class SnippetOrigin(str, Enum):
    """Where a merged record came from."""

    LOCAL = "local"
    REMOTE = "remote"
    SYNCED = "synced"


class SyncStatus(str, Enum):
    """Outcome of the remote step of a store operation."""

    SYNCED = "synced"
    LOCAL_ONLY = "local_only"
    DEGRADED = "degraded"


class MergePolicy(str, Enum):
    """Conflict rule applied when an id exists both locally and remotely."""

    REMOTE_WINS = "remote_wins"
    NEWEST_WINS = "newest_wins"


class ListResult(BaseModel):
    """Merged listing together with how the remote side fared."""

    snippets: List[Snippet] = Field(default_factory=list)
    status: SyncStatus = SyncStatus.LOCAL_ONLY
    origins: Dict[str, SnippetOrigin] = Field(default_factory=dict)
    error: Optional[str] = None


class SyncOutcome(BaseModel):
    """Result of an operation whose remote step is best effort."""

    status: SyncStatus = SyncStatus.LOCAL_ONLY
    error: Optional[str] = None


__all__ = [
    "LANGUAGES",
    "utcnow",
    "Snippet",
    "SnippetCreate",
    "SnippetUpdate",
    "SnippetOrigin",
    "SyncStatus",
    "MergePolicy",
    "ListResult",
    "SyncOutcome",
]
