from __future__ import annotations

import hashlib
import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from libs.core.exceptions import StorageUnavailable, StorageWriteFailed
from libs.core.models import Snippet

STORE_NAME = "snippets"
SCHEMA_VERSION = 1
SCHEMA = {
    "name": STORE_NAME,
    "version": SCHEMA_VERSION,
    "key_path": "id",
    "indexes": {
        "by-title": {"key_path": "title", "multi_entry": False},
        "by-tags": {"key_path": "tags", "multi_entry": True},
    },
}

_SAFE_ID = re.compile(r"[A-Za-z0-9_-]+")
ANONYMOUS_PARTITION = "anonymous"


def owner_partition(user_id: Optional[str]) -> str:
    """Directory name holding the local records of one owner.

    Signed-out callers share an empty partition; nothing can be created
    there because creating a snippet requires a session.
    """

    if user_id is None:
        return ANONYMOUS_PARTITION
    return "user-" + hashlib.sha256(user_id.encode("utf-8")).hexdigest()


class LocalSnippetStore:
    """File system based key/value store for snippets.

    Layout under ``root``::

        schema.json          store name, key path and index definitions
        snippets/<id>.json   one record per file, field-for-field
        indexes.json         ``by-title`` and ``by-tags`` lookups

    Records are returned in key order. The index file is regenerated after
    every write so tag lookups never scan record files they don't need.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.records_dir = self.root / STORE_NAME
        self.schema_file = self.root / "schema.json"
        self.index_file = self.root / "indexes.json"
        self.logger = logging.getLogger(__name__)
        self._opened = False

    # ------------------------------------------------------------------
    # lifecycle
    def open(self) -> "LocalSnippetStore":
        """Open the store, creating directories and schema on first use."""

        if self._opened:
            return self
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            if self.schema_file.exists():
                schema = json.loads(self.schema_file.read_text(encoding="utf-8"))
                if schema.get("version") != SCHEMA_VERSION:
                    raise StorageUnavailable(
                        f"Unsupported local store version: {schema.get('version')}"
                    )
            else:
                self.schema_file.write_text(json.dumps(SCHEMA, indent=2), encoding="utf-8")
            if not self.index_file.exists():
                self._rebuild_indexes()
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"Cannot open local store at {self.root}: {exc}") from exc
        self._opened = True
        self.logger.debug("Local store opened at %s", self.root)
        return self

    @property
    def is_open(self) -> bool:
        return self._opened

    # ------------------------------------------------------------------
    # public API
    def get(self, snippet_id: str) -> Optional[Snippet]:
        self.open()
        if not _SAFE_ID.fullmatch(snippet_id):
            return None
        return self._read(self._path(snippet_id))

    def get_all(self) -> List[Snippet]:
        self.open()
        try:
            files = sorted(self.records_dir.glob("*.json"), key=lambda p: p.stem)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot read local store: {exc}") from exc
        snippets: List[Snippet] = []
        for file in files:
            snippet = self._read(file)
            if snippet is not None:
                snippets.append(snippet)
        return snippets

    def add(self, snippet: Snippet) -> None:
        """Insert a new record; fails if the key already exists."""

        self.open()
        path = self._checked_path(snippet.id)
        if path.exists():
            raise StorageWriteFailed(f"Key already exists: {snippet.id}")
        self._write(path, snippet)

    def put(self, snippet: Snippet) -> None:
        """Insert or replace a record."""

        self.open()
        self._write(self._checked_path(snippet.id), snippet)

    def delete(self, snippet_id: str) -> None:
        self.open()
        if not _SAFE_ID.fullmatch(snippet_id):
            return
        try:
            self._path(snippet_id).unlink(missing_ok=True)
            self._rebuild_indexes()
        except OSError as exc:
            raise StorageWriteFailed(f"Failed to delete {snippet_id}: {exc}") from exc

    def scan_tag(self, tag: str) -> List[Snippet]:
        """Return records whose tags contain ``tag`` exactly."""

        ids = self._load_indexes()["by-tags"].get(tag, [])
        snippets: List[Snippet] = []
        for snippet_id in ids:
            snippet = self._read(self._path(snippet_id))
            if snippet is not None:
                snippets.append(snippet)
        return snippets

    def scan_title(self, title: str) -> List[Snippet]:
        ids = self._load_indexes()["by-title"].get(title, [])
        return [s for s in (self._read(self._path(i)) for i in ids) if s is not None]

    def list_tags(self) -> List[str]:
        """Distinct tags across all records, in first-seen order."""

        tags: Dict[str, None] = {}
        for snippet in self.get_all():
            for tag in snippet.tags:
                tags.setdefault(tag, None)
        return list(tags)

    # ------------------------------------------------------------------
    # helpers
    def _path(self, snippet_id: str) -> Path:
        return self.records_dir / f"{snippet_id}.json"

    def _checked_path(self, snippet_id: str) -> Path:
        if not _SAFE_ID.fullmatch(snippet_id):
            raise StorageWriteFailed(f"Invalid snippet id: {snippet_id!r}")
        return self._path(snippet_id)

    def _read(self, path: Path) -> Optional[Snippet]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailable(f"Cannot read {path.name}: {exc}") from exc
        try:
            return Snippet.model_validate_json(text)
        except PydanticValidationError:
            self.logger.warning("Skipping unreadable record %s", path.name)
            return None

    def _write(self, path: Path, snippet: Snippet) -> None:
        try:
            path.write_text(snippet.model_dump_json(indent=2), encoding="utf-8")
            self._rebuild_indexes()
        except OSError as exc:
            raise StorageWriteFailed(f"Failed to write {snippet.id}: {exc}") from exc

    def _rebuild_indexes(self) -> None:
        by_title: Dict[str, List[str]] = defaultdict(list)
        by_tags: Dict[str, List[str]] = defaultdict(list)
        for file in sorted(self.records_dir.glob("*.json"), key=lambda p: p.stem):
            snippet = self._read(file)
            if snippet is None:
                continue
            by_title[snippet.title].append(snippet.id)
            for tag in snippet.tags:
                by_tags[tag].append(snippet.id)
        data = {"by-title": by_title, "by-tags": by_tags}
        self.index_file.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")

    def _load_indexes(self) -> Dict[str, Dict[str, List[str]]]:
        self.open()
        try:
            return json.loads(self.index_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"Cannot read local store indexes: {exc}") from exc
