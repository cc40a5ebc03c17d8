"""
Document store

Records are addressed by path: "<collection>" for a whole collection,
"<collection>/<key>" for a single record. Keys are generated by the store
(MongoDB ObjectIds rendered as hex strings).

The API only depends on the DocumentStore protocol; MongoDocumentStore is
the production implementation on top of pymongo's async client.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple

from bson import ObjectId
from bson.errors import BSONError
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from config import Settings
from errors import StoreError

logger = logging.getLogger(__name__)

PRODUCTOS = "productos"
USUARIOS = "usuarios"
CHATS = "chats"
MENSAJES = "mensaje"


class DocumentStore(Protocol):
    async def read(self, path: str) -> Optional[Dict[str, Any]]: ...
    async def push(self, path: str, value: Dict[str, Any]) -> str: ...
    async def update(self, path: str, value: Dict[str, Any]) -> None: ...
    async def delete(self, path: str) -> None: ...
    async def ping(self) -> bool: ...
    async def close(self) -> None: ...


def now_timestamp() -> str:
    """Current UTC time as 2024-05-01T12:30:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> datetime:
    """Inverse of now_timestamp; anything unparseable sorts first."""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def split_path(path: str) -> Tuple[str, Optional[str]]:
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) == 1:
        return parts[0], None
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"Unsupported store path: {path!r}")


def record_path(collection: str, key: str) -> str:
    return f"{collection}/{key}"


@contextmanager
def _translate_errors(operation: str, path: str) -> Iterator[None]:
    try:
        yield
    except (PyMongoError, BSONError, OverflowError) as e:
        logger.error(
            f"Mongo {operation} on {path} failed: {e}",
            extra={"operation": operation, "collection": path},
        )
        raise StoreError(f"Database {operation} failed", operation=operation) from e


class MongoDocumentStore:
    """DocumentStore backed by one MongoDB database."""

    def __init__(self, db, client: Optional[AsyncMongoClient] = None):
        self._db = db
        self._client = client

    async def read(self, path: str) -> Optional[Dict[str, Any]]:
        collection, key = split_path(path)
        with _translate_errors("read", path):
            if key is None:
                docs = await self._db[collection].find({}).to_list(length=None)
                if not docs:
                    return None
                return {str(d.pop("_id")): d for d in docs}
            if not ObjectId.is_valid(key):
                return None
            doc = await self._db[collection].find_one({"_id": ObjectId(key)})
        if doc is None:
            return None
        doc.pop("_id", None)
        return doc

    async def push(self, path: str, value: Dict[str, Any]) -> str:
        collection, key = split_path(path)
        if key is not None:
            raise ValueError(f"push expects a collection path, got {path!r}")
        with _translate_errors("write", path):
            result = await self._db[collection].insert_one(dict(value))
        return str(result.inserted_id)

    async def update(self, path: str, value: Dict[str, Any]) -> None:
        collection, oid = self._record_id(path)
        with _translate_errors("update", path):
            await self._db[collection].update_one({"_id": oid}, {"$set": dict(value)})

    async def delete(self, path: str) -> None:
        collection, oid = self._record_id(path)
        with _translate_errors("delete", path):
            await self._db[collection].delete_one({"_id": oid})

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    @staticmethod
    def _record_id(path: str) -> Tuple[str, ObjectId]:
        collection, key = split_path(path)
        if key is None or not ObjectId.is_valid(key):
            raise StoreError(f"Invalid record path {path!r}", operation="resolve")
        return collection, ObjectId(key)


def create_store(settings: Settings) -> Optional[MongoDocumentStore]:
    """Build the process-wide store, or None when DATABASE_URL is not set."""
    if not settings.database_url:
        logger.warning("DATABASE_URL not set; store-backed endpoints will fail")
        return None
    client = AsyncMongoClient(settings.database_url)
    logger.info(f"Document store configured (database {settings.database_name})")
    return MongoDocumentStore(client[settings.database_name], client=client)
