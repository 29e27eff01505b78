"""SQLAlchemy ORM models for the remote snippets table."""

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Snippet(Base):
    __tablename__ = "snippets"

    # Ids are generated client-side, never by the database
    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    code: Mapped[str] = mapped_column(Text, default="")
    language: Mapped[str] = mapped_column(String(32), default="")
    tags: Mapped[List[str]] = mapped_column(ARRAY(String), default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    __table_args__ = (Index("ix_snippets_user_created", "user_id", "created_at"),)


__all__ = ["Snippet"]
