from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from libs.auth import IdentityProvider
from libs.core.exceptions import (
    NotAuthenticated,
    NotFoundError,
    RemoteReadFailed,
    RemoteWriteFailed,
    ValidationError,
)
from libs.core.models import (
    ListResult,
    MergePolicy,
    Snippet,
    SnippetCreate,
    SnippetOrigin,
    SnippetUpdate,
    SyncOutcome,
    SyncStatus,
    utcnow,
)
from libs.db import RemoteTable
from libs.storage import LocalSnippetStore

# Fields never sent in a remote update; they are filters or immutable.
_REMOTE_UPDATE_EXCLUDE = {"id", "user_id", "created_at"}


def _later_than(previous: datetime) -> datetime:
    now = utcnow()
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


def _validated(model, fields: Dict[str, Any]):
    try:
        return model.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


class SnippetStore:
    """CRUD, search and tag filtering over the local and remote snippet stores.

    The local store is always written first and stays committed when the
    remote step fails. Reads merge the user's remote rows over the local
    records; searches and tag lookups only look at the local store.
    """

    def __init__(
        self,
        local: LocalSnippetStore,
        remote: Optional[RemoteTable],
        identity: IdentityProvider,
        merge_policy: MergePolicy = MergePolicy.REMOTE_WINS,
    ) -> None:
        self.local = local
        self.remote = remote
        self.identity = identity
        self.merge_policy = MergePolicy(merge_policy)
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # reads
    async def list_all(self) -> List[Snippet]:
        return (await self.list_all_detailed()).snippets

    async def list_all_detailed(self) -> ListResult:
        local_snippets = self.local.get_all()
        origins = {s.id: SnippetOrigin.LOCAL for s in local_snippets}

        session = await self.identity.get_session()
        if session is None or self.remote is None:
            return ListResult(
                snippets=local_snippets, status=SyncStatus.LOCAL_ONLY, origins=origins
            )

        try:
            remote_snippets = await self.remote.select_by_owner(session.user_id)
        except RemoteReadFailed as exc:
            self.logger.warning(
                "Remote fetch failed, serving local snippets only",
                extra={"operation": "list", "user_id": session.user_id, "reason": str(exc)},
            )
            return ListResult(
                snippets=local_snippets,
                status=SyncStatus.DEGRADED,
                origins=origins,
                error=str(exc),
            )

        merged = list(local_snippets)
        positions = {s.id: i for i, s in enumerate(merged)}
        for remote_snippet in remote_snippets:
            pos = positions.get(remote_snippet.id)
            if pos is None:
                positions[remote_snippet.id] = len(merged)
                merged.append(remote_snippet)
                origins[remote_snippet.id] = SnippetOrigin.REMOTE
                continue
            origins[remote_snippet.id] = SnippetOrigin.SYNCED
            if self._remote_wins(merged[pos], remote_snippet):
                merged[pos] = remote_snippet
        return ListResult(snippets=merged, status=SyncStatus.SYNCED, origins=origins)

    def _remote_wins(self, local_snippet: Snippet, remote_snippet: Snippet) -> bool:
        if self.merge_policy is MergePolicy.NEWEST_WINS:
            return remote_snippet.updated_at >= local_snippet.updated_at
        return True

    async def search(self, query: str) -> List[Snippet]:
        """Case-insensitive substring match on title, description and tags."""

        needle = query.lower()
        return [
            s
            for s in self.local.get_all()
            if needle in s.title.lower()
            or needle in s.description.lower()
            or any(needle in tag.lower() for tag in s.tags)
        ]

    async def get_by_tag(self, tag: str) -> List[Snippet]:
        return self.local.scan_tag(tag)

    async def list_tags(self) -> List[str]:
        return self.local.list_tags()

    # ------------------------------------------------------------------
    # writes
    async def create(self, fields: Union[SnippetCreate, Dict[str, Any]]) -> Snippet:
        if not isinstance(fields, SnippetCreate):
            fields = _validated(SnippetCreate, fields)

        session = await self.identity.get_session()
        if session is None:
            raise NotAuthenticated("User not authenticated")

        timestamp = utcnow()
        snippet = Snippet(
            **fields.model_dump(),
            id=str(uuid4()),
            user_id=session.user_id,
            created_at=timestamp,
            updated_at=timestamp,
        )

        self.local.add(snippet)

        if self.remote is not None:
            try:
                await self.remote.insert(snippet)
            except RemoteWriteFailed as exc:
                self.logger.error(
                    "Remote insert failed, snippet kept locally",
                    extra={"operation": "create", "snippet_id": snippet.id, "reason": str(exc)},
                )
                raise RemoteWriteFailed(str(exc), snippet=snippet) from exc

        self.logger.info(
            "Snippet created", extra={"operation": "create", "snippet_id": snippet.id}
        )
        return snippet

    async def update(
        self, snippet_id: str, fields: Union[SnippetUpdate, Dict[str, Any]]
    ) -> Snippet:
        if not isinstance(fields, SnippetUpdate):
            fields = _validated(SnippetUpdate, fields)

        existing = self.local.get(snippet_id)
        if existing is None:
            raise NotFoundError(f"Snippet not found: {snippet_id}")

        changes = fields.model_dump(exclude_unset=True, exclude_none=True)
        changes["updated_at"] = _later_than(existing.updated_at)
        updated = existing.model_copy(update=changes)

        # Committed locally before the session check; not undone on failure.
        self.local.put(updated)

        session = await self.identity.get_session()
        if session is None:
            raise NotAuthenticated("User not authenticated")

        if self.remote is not None:
            try:
                await self.remote.update(
                    snippet_id,
                    session.user_id,
                    updated.model_dump(exclude=_REMOTE_UPDATE_EXCLUDE),
                )
            except RemoteWriteFailed as exc:
                self.logger.error(
                    "Remote update failed, change kept locally",
                    extra={"operation": "update", "snippet_id": snippet_id, "reason": str(exc)},
                )
                raise RemoteWriteFailed(str(exc), snippet=updated) from exc

        return updated

    async def delete(self, snippet_id: str) -> SyncOutcome:
        self.local.delete(snippet_id)

        session = await self.identity.get_session()
        if session is None or self.remote is None:
            return SyncOutcome(status=SyncStatus.LOCAL_ONLY)

        try:
            await self.remote.delete(snippet_id)
        except RemoteWriteFailed as exc:
            self.logger.warning(
                "Remote delete failed",
                extra={"operation": "delete", "snippet_id": snippet_id, "reason": str(exc)},
            )
            return SyncOutcome(status=SyncStatus.DEGRADED, error=str(exc))
        return SyncOutcome(status=SyncStatus.SYNCED)


__all__ = ["SnippetStore"]
