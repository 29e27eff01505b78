import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api import main  # noqa: E402
from libs.auth import StaticIdentityProvider, issue_token  # noqa: E402
from libs.core.exceptions import RemoteReadFailed, RemoteWriteFailed  # noqa: E402
from libs.core.models import Snippet  # noqa: E402
from libs.core.settings import Settings  # noqa: E402
from libs.db import RemoteTable  # noqa: E402
from libs.storage import LocalSnippetStore  # noqa: E402
from libs.usecases import SnippetStore  # noqa: E402

SECRET = "test-secret"


class InMemoryRemoteTable(RemoteTable):
    """Remote table double keeping rows in a dict."""

    def __init__(self) -> None:
        self.rows: Dict[str, Snippet] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.calls: List[tuple] = []

    async def select_by_owner(self, user_id: str) -> List[Snippet]:
        self.calls.append(("select", user_id))
        if self.fail_reads:
            raise RemoteReadFailed("remote unreachable")
        rows = [r for r in self.rows.values() if r.user_id == user_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def insert(self, snippet: Snippet) -> None:
        self.calls.append(("insert", snippet.id))
        if self.fail_writes:
            raise RemoteWriteFailed("remote unreachable")
        self.rows[snippet.id] = snippet

    async def update(self, snippet_id: str, user_id: str, fields: Dict[str, Any]) -> None:
        self.calls.append(("update", snippet_id, user_id, dict(fields)))
        if self.fail_writes:
            raise RemoteWriteFailed("remote unreachable")
        row = self.rows.get(snippet_id)
        if row is not None and row.user_id == user_id:
            self.rows[snippet_id] = row.model_copy(update=fields)

    async def delete(self, snippet_id: str) -> None:
        self.calls.append(("delete", snippet_id))
        if self.fail_writes:
            raise RemoteWriteFailed("remote unreachable")
        self.rows.pop(snippet_id, None)


@pytest.fixture()
def local_store(tmp_path) -> LocalSnippetStore:
    return LocalSnippetStore(tmp_path / "store").open()


@pytest.fixture()
def remote() -> InMemoryRemoteTable:
    return InMemoryRemoteTable()


@pytest.fixture()
def store(local_store, remote) -> SnippetStore:
    return SnippetStore(local_store, remote, StaticIdentityProvider.for_user("user-1"))


@pytest.fixture()
def client(tmp_path, remote, monkeypatch):
    """FastAPI test client with storage dependencies overridden."""

    settings = Settings(local_store_dir=tmp_path / "api-store", session_secret=SECRET)
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    main.app.dependency_overrides[main.get_remote] = lambda: remote

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()


def bearer(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user_id, SECRET)}"}


@pytest.fixture()
def auth_headers() -> Dict[str, str]:
    return bearer("user-1")


@pytest.fixture()
def other_headers() -> Dict[str, str]:
    return bearer("user-2")
