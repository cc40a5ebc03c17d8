"""Mongo-backed document store and path/timestamp helpers."""

import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId, encode
from bson.errors import InvalidDocument
from pymongo.errors import PyMongoError

from config import Settings
from database import (
    MongoDocumentStore, create_store, now_timestamp, parse_timestamp, record_path, split_path,
)
from errors import StoreError

OID = ObjectId("65f000000000000000000001")


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def mongo(collection):
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.close = AsyncMock()
    return MongoDocumentStore({"productos": collection}, client=client)


def test_split_path():
    assert split_path("productos") == ("productos", None)
    assert split_path("/productos/abc/") == ("productos", "abc")
    assert split_path(record_path("chats", "c1")) == ("chats", "c1")


def test_split_path_rejects_nested_paths():
    with pytest.raises(ValueError):
        split_path("a/b/c")


def test_now_timestamp_format():
    stamp = now_timestamp()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", stamp)
    assert parse_timestamp(stamp).tzinfo is not None


def test_parse_timestamp_garbage_sorts_first():
    assert parse_timestamp(None) < parse_timestamp("2000-01-01T00:00:00.000Z")


async def test_read_collection_maps_ids_to_records(mongo, collection):
    collection.find.return_value.to_list = AsyncMock(
        return_value=[{"_id": OID, "nombre": "Mesa"}],
    )

    data = await mongo.read("productos")

    assert data == {str(OID): {"nombre": "Mesa"}}


async def test_read_empty_collection_is_absent(mongo, collection):
    collection.find.return_value.to_list = AsyncMock(return_value=[])

    assert await mongo.read("productos") is None


async def test_read_record(mongo, collection):
    collection.find_one = AsyncMock(return_value={"_id": OID, "nombre": "Mesa"})

    assert await mongo.read(f"productos/{OID}") == {"nombre": "Mesa"}
    collection.find_one.assert_awaited_once_with({"_id": OID})


async def test_read_invalid_key_is_absent(mongo, collection):
    collection.find_one = AsyncMock()

    assert await mongo.read("productos/not-an-object-id") is None
    collection.find_one.assert_not_called()


async def test_push_returns_generated_key(mongo, collection):
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=OID))
    record = {"nombre": "Mesa"}

    key = await mongo.push("productos", record)

    assert key == str(OID)
    assert record == {"nombre": "Mesa"}


async def test_update_sets_fields(mongo, collection):
    collection.update_one = AsyncMock()

    await mongo.update(f"productos/{OID}", {"precio": 10})

    collection.update_one.assert_awaited_once_with({"_id": OID}, {"$set": {"precio": 10}})


async def test_mongo_failure_becomes_store_error(mongo, collection):
    collection.delete_one = AsyncMock(side_effect=PyMongoError("boom"))

    with pytest.raises(StoreError) as exc_info:
        await mongo.delete(f"productos/{OID}")

    assert exc_info.value.operation == "delete"
    assert exc_info.value.http_status == 500


async def test_ping_and_close(mongo):
    assert await mongo.ping() is True
    await mongo.close()
    mongo._client.close.assert_awaited_once()


async def test_ping_failure(mongo):
    mongo._client.admin.command = AsyncMock(side_effect=PyMongoError("down"))

    assert await mongo.ping() is False


def test_create_store_without_url():
    assert create_store(Settings(database_url=None)) is None


def test_parse_timestamp_without_offset_is_utc():
    parsed = parse_timestamp("2024-03-01T09:00:00")

    assert parsed.tzinfo is not None
    assert parsed < parse_timestamp("2024-03-01T09:00:01.000Z")


@pytest.mark.parametrize("error", [
    OverflowError("MongoDB can only handle up to 8-byte ints"),
    InvalidDocument("cannot encode object"),
])
async def test_encoding_failure_becomes_store_error(mongo, collection, error):
    collection.insert_one = AsyncMock(side_effect=error)

    with pytest.raises(StoreError) as exc_info:
        await mongo.push("productos", {"nombre": "Mesa", "precio": 10**30})

    assert exc_info.value.operation == "write"


async def test_oversized_int_is_rejected_by_bson_and_wrapped(mongo, collection):
    collection.insert_one = AsyncMock(side_effect=lambda doc: encode(doc))

    with pytest.raises(StoreError):
        await mongo.push("productos", {"nombre": "Mesa", "precio": 10**30})
