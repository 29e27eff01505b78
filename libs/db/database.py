"""Database setup for SQLAlchemy with async psycopg driver."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import CreateColumn

from libs.core.settings import get_settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""


@lru_cache
def get_engine() -> AsyncEngine:
    """Create the async engine for the remote snippets table.

    Resilient pool settings to survive Postgres restarts:
    - pool_pre_ping: validate connections before using
    - pool_recycle: proactively recycle connections to avoid server-side timeouts
    """
    return create_async_engine(
        get_settings().postgres_uri,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False)


@asynccontextmanager
async def get_session(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope around a series of operations."""

    factory = factory or get_sessionmaker()
    async with factory() as session:  # pragma: no cover - simple wrapper
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _ensure_database(url_str: str) -> None:
    """Create the target Postgres database if it does not exist yet."""

    logger = logging.getLogger(__name__)
    url = make_url(url_str)
    if not url.drivername.startswith("postgresql"):
        return
    maint_engine = create_engine(url.set(database="postgres"))
    try:
        with maint_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname=:db"),
                {"db": url.database},
            ).scalar()
            if exists != 1:
                # CREATE DATABASE must run outside a transaction block
                conn.execution_options(isolation_level="AUTOCOMMIT").execute(
                    text(f'CREATE DATABASE "{url.database}"')
                )
                logger.info("Created missing database '%s'", url.database)
    finally:
        maint_engine.dispose()


async def init_db(max_attempts: int = 5, delay: float = 5) -> None:
    """Create tables and add missing columns if necessary.

    Attempts to connect to the database multiple times with a delay
    between attempts. Only after a successful connection will the tables be
    created. If all attempts fail, the last exception is propagated.
    """

    # Import models to ensure Base.metadata is populated even when this module
    # is imported standalone (e.g., in a db-init one-off container).
    from . import models  # noqa: F401

    def sync_init(sync_conn) -> None:
        Base.metadata.create_all(sync_conn)
        inspector = inspect(sync_conn)
        for table in Base.metadata.tables.values():
            existing = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name not in existing:
                    col_ddl = CreateColumn(column.copy()).compile(
                        dialect=sync_conn.dialect
                    )
                    sync_conn.execute(
                        text(f"ALTER TABLE {table.name} ADD COLUMN {col_ddl}")
                    )

    logger = logging.getLogger(__name__)
    last_exc: SQLAlchemyError | None = None

    try:
        _ensure_database(get_settings().postgres_uri)
    except SQLAlchemyError as exc:  # pragma: no cover - best effort
        logger.warning("Could not ensure database exists: %s", exc)

    engine = get_engine()
    for attempt in range(1, max_attempts + 1):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(sync_init)
            logger.info("DB schema ensured (attempt %d)", attempt)
            return
        except SQLAlchemyError as exc:  # pragma: no cover - best effort
            last_exc = exc
            if attempt == max_attempts:
                break
            logger.warning(
                "DB init attempt %d failed: %s. Retrying in %ss", attempt, exc, delay
            )
            await asyncio.sleep(delay)

    logger.error("DB init failed after %d attempts", max_attempts)
    if last_exc is not None:
        raise last_exc


__all__ = ["Base", "get_engine", "get_sessionmaker", "get_session", "init_db"]


if __name__ == "__main__":  # pragma: no cover - one-off schema bootstrap
    from libs.logging import setup_logging

    setup_logging()
    asyncio.run(init_db())
