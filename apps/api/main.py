from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse

from libs.auth import IdentityProvider, SignedTokenIdentityProvider
from libs.core.exceptions import (
    NotAuthenticated,
    NotFoundError,
    RemoteWriteFailed,
    StorageUnavailable,
    StorageWriteFailed,
)
from libs.core.models import LANGUAGES, MergePolicy, Snippet, SnippetCreate, SnippetUpdate
from libs.core.settings import get_settings
from libs.db import RemoteTable, SnippetRepo, get_sessionmaker
from libs.logging import setup_logging
from libs.storage import LocalSnippetStore, owner_partition
from libs.usecases import SnippetStore


# ---------------------------------------------------------------------------
# Dependency factories


def get_identity(
    authorization: str | None = Header(None),
) -> IdentityProvider:
    """Resolve the session from an ``Authorization: Bearer <token>`` header."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return SignedTokenIdentityProvider(token, get_settings().session_secret)


async def get_local_store(
    identity: IdentityProvider = Depends(get_identity),
) -> LocalSnippetStore:
    """Local store of the calling user; signed-out callers get an empty one."""
    session = await identity.get_session()
    partition = owner_partition(session.user_id if session else None)
    return LocalSnippetStore(Path(get_settings().local_store_dir) / partition)


def get_remote() -> Optional[RemoteTable]:
    settings = get_settings()
    if not settings.remote_enabled:
        return None
    return SnippetRepo(get_sessionmaker())


def snippet_store(
    local: LocalSnippetStore = Depends(get_local_store),
    remote: Optional[RemoteTable] = Depends(get_remote),
    identity: IdentityProvider = Depends(get_identity),
) -> SnippetStore:
    policy = MergePolicy(get_settings().merge_policy)
    return SnippetStore(local, remote, identity, merge_policy=policy)


def _storage_unavailable(exc: StorageUnavailable) -> HTTPException:
    return HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def _remote_write_failed(exc: RemoteWriteFailed, action: str) -> JSONResponse:
    # Local copy is committed; hand it back so the client can keep showing it.
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": f"Snippet {action} locally but not synced: {exc}",
            "snippet": exc.snippet.model_dump(mode="json") if exc.snippet else None,
        },
    )


def _listing(result) -> Dict[str, Any]:
    return {
        "items": [s.model_dump(mode="json") for s in result.snippets],
        "sync_status": result.status.value,
        "origins": {k: v.value for k, v in result.origins.items()},
        "error": result.error,
    }


# ---------------------------------------------------------------------------
# FastAPI application


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    yield


app = FastAPI(title="DevSnippet API", lifespan=lifespan)


# Routes ---------------------------------------------------------------------


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/languages")
def languages() -> List[str]:
    return LANGUAGES


@app.get("/snippets")
async def list_snippets(store: SnippetStore = Depends(snippet_store)) -> Dict[str, Any]:
    try:
        result = await store.list_all_detailed()
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    return _listing(result)


@app.get("/snippets/search")
async def search_snippets(
    q: str = Query(""),
    store: SnippetStore = Depends(snippet_store),
) -> Dict[str, Any]:
    try:
        if not q:
            return _listing(await store.list_all_detailed())
        items = await store.search(q)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    return {"items": [s.model_dump(mode="json") for s in items]}


@app.get("/snippets/tags")
async def list_tags(store: SnippetStore = Depends(snippet_store)) -> Dict[str, List[str]]:
    try:
        return {"tags": await store.list_tags()}
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)


@app.get("/snippets/by-tag/{tag}")
async def snippets_by_tag(
    tag: str,
    store: SnippetStore = Depends(snippet_store),
) -> Dict[str, Any]:
    try:
        items = await store.get_by_tag(tag)
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    return {"items": [s.model_dump(mode="json") for s in items]}


@app.post("/snippets", status_code=status.HTTP_201_CREATED, response_model=Snippet)
async def create_snippet(
    req: SnippetCreate,
    store: SnippetStore = Depends(snippet_store),
):
    try:
        return await store.create(req)
    except NotAuthenticated as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except StorageWriteFailed as exc:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to add snippet: {exc}")
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    except RemoteWriteFailed as exc:
        return _remote_write_failed(exc, "saved")


@app.put("/snippets/{snippet_id}", response_model=Snippet)
async def update_snippet(
    snippet_id: str,
    req: SnippetUpdate,
    store: SnippetStore = Depends(snippet_store),
):
    try:
        return await store.update(snippet_id, req)
    except NotFoundError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Snippet not found")
    except NotAuthenticated as exc:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            detail=f"{exc}; change saved locally only",
        )
    except StorageWriteFailed as exc:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to update snippet: {exc}")
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    except RemoteWriteFailed as exc:
        return _remote_write_failed(exc, "updated")


@app.delete("/snippets/{snippet_id}")
async def delete_snippet(
    snippet_id: str,
    store: SnippetStore = Depends(snippet_store),
) -> Dict[str, Any]:
    try:
        outcome = await store.delete(snippet_id)
    except StorageWriteFailed as exc:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to delete snippet: {exc}")
    except StorageUnavailable as exc:
        raise _storage_unavailable(exc)
    return {
        "message": "Snippet deleted successfully",
        "sync_status": outcome.status.value,
        "error": outcome.error,
    }


__all__ = ["app"]
