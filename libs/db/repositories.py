"""Remote table interface and its SQLAlchemy implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libs.core.exceptions import RemoteReadFailed, RemoteWriteFailed
from libs.core.models import Snippet

from . import models
from .database import get_session

# Columns a remote update may touch. ``id`` and ``user_id`` are filters only.
UPDATABLE_FIELDS = ("title", "description", "code", "language", "tags", "updated_at")


class RemoteTable(ABC):
    """Row store for snippets partitioned by owning user."""

    @abstractmethod
    async def select_by_owner(self, user_id: str) -> List[Snippet]:
        """Return every snippet owned by ``user_id``, newest created first."""

    @abstractmethod
    async def insert(self, snippet: Snippet) -> None:
        """Insert a new row."""

    @abstractmethod
    async def update(self, snippet_id: str, user_id: str, fields: Dict[str, Any]) -> None:
        """Update the row matching both ``snippet_id`` and ``user_id``."""

    @abstractmethod
    async def delete(self, snippet_id: str) -> None:
        """Delete the row with ``snippet_id``."""


class SnippetRepo(RemoteTable):
    """CRUD operations for :class:`models.Snippet`.

    Every call runs in its own short transaction so a failing remote step
    never leaves a half-open session behind.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self.session_factory = session_factory

    async def select_by_owner(self, user_id: str) -> List[Snippet]:
        stmt = (
            select(models.Snippet)
            .where(models.Snippet.user_id == user_id)
            .order_by(models.Snippet.created_at.desc())
        )
        try:
            async with get_session(self.session_factory) as session:
                res = await session.execute(stmt)
                return [_to_domain(row) for row in res.scalars().all()]
        except SQLAlchemyError as exc:
            raise RemoteReadFailed(f"Failed to fetch snippets: {exc}") from exc
        except PydanticValidationError as exc:
            raise RemoteReadFailed(f"Invalid snippet row: {exc}") from exc

    async def insert(self, snippet: Snippet) -> None:
        try:
            async with get_session(self.session_factory) as session:
                session.add(models.Snippet(**snippet.model_dump()))
        except SQLAlchemyError as exc:
            raise RemoteWriteFailed(f"Failed to insert snippet: {exc}") from exc

    async def update(self, snippet_id: str, user_id: str, fields: Dict[str, Any]) -> None:
        values = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        stmt = (
            update(models.Snippet)
            .where(models.Snippet.id == snippet_id, models.Snippet.user_id == user_id)
            .values(**values)
        )
        try:
            async with get_session(self.session_factory) as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise RemoteWriteFailed(f"Failed to update snippet: {exc}") from exc

    async def delete(self, snippet_id: str) -> None:
        stmt = delete(models.Snippet).where(models.Snippet.id == snippet_id)
        try:
            async with get_session(self.session_factory) as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise RemoteWriteFailed(f"Failed to delete snippet: {exc}") from exc


def _to_domain(row: models.Snippet) -> Snippet:
    return Snippet(
        id=row.id,
        title=row.title,
        description=row.description or "",
        code=row.code or "",
        language=row.language or "",
        tags=list(row.tags or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
        user_id=row.user_id,
    )


__all__ = ["RemoteTable", "SnippetRepo", "UPDATABLE_FIELDS"]
