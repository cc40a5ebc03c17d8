"""Shared fixtures: an in-memory document store and an API client bound to it."""

import os
from typing import Any, Dict, Optional
from uuid import uuid4

# Tests never talk to a real database
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from httpx import ASGITransport, AsyncClient

from database import split_path
from errors import StoreError
from main import app, get_optional_store


class FakeDocumentStore:
    """DocumentStore kept in a dict of collections.

    `calls` records every mutating call as (operation, path); operations
    listed in `failing` raise StoreError instead of running.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls = []
        self.failing = set()

    def seed(self, collection: str, key: str, record: Dict[str, Any]) -> None:
        self.collections.setdefault(collection, {})[key] = dict(record)

    def mutations(self):
        return [c for c in self.calls if c[0] in ("push", "update", "delete")]

    def _check(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        if operation in self.failing:
            raise StoreError(f"Database {operation} failed", operation=operation)

    async def read(self, path: str) -> Optional[Dict[str, Any]]:
        self._check("read", path)
        collection, key = split_path(path)
        records = self.collections.get(collection)
        if not records:
            return None
        if key is None:
            return {k: dict(v) for k, v in records.items()}
        record = records.get(key)
        return dict(record) if record is not None else None

    async def push(self, path: str, value: Dict[str, Any]) -> str:
        self._check("push", path)
        key = uuid4().hex
        self.seed(path, key, value)
        return key

    async def update(self, path: str, value: Dict[str, Any]) -> None:
        self._check("update", path)
        collection, key = split_path(path)
        self.collections[collection][key].update(value)

    async def delete(self, path: str) -> None:
        self._check("delete", path)
        collection, key = split_path(path)
        self.collections[collection].pop(key, None)

    async def ping(self) -> bool:
        return "ping" not in self.failing

    async def close(self) -> None:
        pass


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_optional_store] = lambda: store
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
    app.dependency_overrides.clear()
