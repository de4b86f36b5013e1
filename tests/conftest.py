"""
Pytest configuration and fixtures for codex tests.

The in-memory stores implement the same protocols as the Directus and SQL
adapters, including the typed errors, so jobs and services can be tested
without a backend.
"""
import os
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("STORE_BACKEND", "directus")

from codex_api.adapters.base import StoreBundle  # noqa: E402
from codex_api.core.config import Settings  # noqa: E402
from codex_api.core.exceptions import (  # noqa: E402
    CollectionNotFoundError,
    FieldNotFoundError,
    StoreError,
)


def _matches(record: Dict[str, Any], node: Optional[Dict[str, Any]]) -> bool:
    if not node:
        return True
    for key, value in node.items():
        if key == "_and":
            if not all(_matches(record, child) for child in value):
                return False
        elif key == "_or":
            if not any(_matches(record, child) for child in value):
                return False
        else:
            current = record.get(key)
            for op, operand in value.items():
                if op == "_eq" and current != operand:
                    return False
                if op == "_neq" and current == operand:
                    return False
                if op == "_gt" and not (current is not None and current > operand):
                    return False
                if op == "_null" and (current is None) != bool(operand):
                    return False
                if op == "_nnull" and (current is not None) != bool(operand):
                    return False
    return True


class InMemoryItemStore:
    """ItemStore over a dict of records keyed by id."""

    def __init__(
        self,
        records: Optional[List[Dict[str, Any]]] = None,
        collection: str = "codex",
        exists: bool = True,
        missing_fields: Optional[set] = None,
    ):
        self.collection = collection
        self.exists = exists
        self.missing_fields = set(missing_fields or ())
        self.records: Dict[Any, Dict[str, Any]] = {}
        self.created: List[Dict[str, Any]] = []
        self.updates: List[tuple] = []
        self.queries: List[Dict[str, Any]] = []
        self.update_errors: Dict[Any, Exception] = {}
        self.create_errors: Dict[Any, Exception] = {}
        self._next_id = 1
        for record in records or []:
            self.records[record["id"]] = dict(record)

    def _check_exists(self):
        if not self.exists:
            raise CollectionNotFoundError(self.collection)

    def _check_fields(self, names):
        for name in names:
            if name in self.missing_fields:
                raise FieldNotFoundError(name)

    async def collection_exists(self) -> bool:
        return self.exists

    async def read_by_query(self, query):
        self._check_exists()
        self.queries.append(query)
        rows = [r for r in self.records.values() if _matches(r, query.get("filter"))]
        rows.sort(key=lambda r: r["id"])
        offset = query.get("offset") or 0
        rows = rows[offset:]
        limit = query.get("limit")
        if limit is not None and limit >= 0:
            rows = rows[:limit]
        fields = query.get("fields")
        if fields and "*" not in fields:
            rows = [{f: r.get(f) for f in fields} for r in rows]
        return [dict(r) for r in rows]

    async def create_one(self, fields):
        self._check_exists()
        self._check_fields(fields)
        item_id = fields.get("id")
        if item_id in self.create_errors:
            raise self.create_errors[item_id]
        if item_id is None:
            item_id = self._next_id
            self._next_id += 1
        record = {**fields, "id": item_id}
        self.records[item_id] = record
        self.created.append(record)
        return item_id

    async def update_one(self, item_id, fields):
        self._check_exists()
        self._check_fields(fields)
        if item_id in self.update_errors:
            raise self.update_errors[item_id]
        self.records.setdefault(item_id, {"id": item_id}).update(fields)
        self.updates.append((item_id, dict(fields)))


class InMemoryFileStore:
    """FileStore that keeps uploads in a list."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: List[Dict[str, Any]] = []

    async def upload_one(self, content, *, filename_download, type, folder=None, storage=None):
        if self.fail:
            raise StoreError("upload rejected")
        file_id = f"file-{len(self.uploads) + 1}"
        self.uploads.append({
            "id": file_id,
            "content": content,
            "filename_download": filename_download,
            "type": type,
            "folder": folder,
            "storage": storage,
        })
        return file_id


class InMemoryFolderStore:
    def __init__(self, folders: Optional[List[Dict[str, Any]]] = None):
        self.folders = list(folders or [])
        self.reads = 0
        self.created: List[Dict[str, Any]] = []

    async def read_by_query(self, query):
        self.reads += 1
        name = query["filter"]["name"]["_eq"]
        return [f for f in self.folders if f["name"] == name and f.get("parent") is None][: query.get("limit", 1)]

    async def create_one(self, fields):
        folder = {"id": f"folder-{len(self.folders) + 1}", "parent": None, **fields}
        self.folders.append(folder)
        self.created.append(folder)
        return folder["id"]


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Development settings pointed at a temporary seed directory."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        STORE_BACKEND="directus",
        SEED_DIR=str(tmp_path / "seed"),
        CODEX_UNIVERSE_SIZE=10,
        SEED_BATCH_SIZE=4,
        IPFS_GATEWAY="http://ipfs.test",
        IPFS_CODEX_HASH="QmTestHash",
        THE_GRAPH_API_KEY="test-key",
        OWNER_SYNC_PAGE_SIZE=3,
        MOCA_API_BASE_URL="http://moca.test",
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
def item_store() -> InMemoryItemStore:
    return InMemoryItemStore()


@pytest.fixture
def file_store() -> InMemoryFileStore:
    return InMemoryFileStore()


@pytest.fixture
def folder_store() -> InMemoryFolderStore:
    return InMemoryFolderStore()


@pytest.fixture
def stores(item_store, file_store, folder_store) -> StoreBundle:
    return StoreBundle(items=item_store, files=file_store, folders=folder_store, storage="local")


@pytest.fixture
def no_sleep(monkeypatch) -> AsyncMock:
    """Replace asyncio.sleep so retry and pagination delays return at once."""
    sleep = AsyncMock()
    monkeypatch.setattr("asyncio.sleep", sleep)
    return sleep


@pytest.fixture
def make_items():
    """Factory for item stores with custom records or schema gaps."""
    return InMemoryItemStore


@pytest.fixture
def failing_file_store() -> InMemoryFileStore:
    return InMemoryFileStore(fail=True)
