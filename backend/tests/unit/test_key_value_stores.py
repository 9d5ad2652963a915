"""Unit tests for the JSON file and SQLAlchemy key/value stores."""

import json

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from batch_engine.infrastructure.database.base import Base
from batch_engine.infrastructure.database.repositories import SQLAlchemyKeyValueStore
from batch_engine.infrastructure.storage.json_file_key_value_store import JsonFileKeyValueStore


@pytest.mark.asyncio
async def test_json_file_store_round_trip(tmp_path):
    store = JsonFileKeyValueStore(tmp_path / "nested" / "store.json")

    assert await store.get("job") is None
    await store.set("job", '{"id": "batch_1"}')
    await store.set("other", "데이터")

    assert await store.get("job") == '{"id": "batch_1"}'
    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert on_disk == {"job": '{"id": "batch_1"}', "other": "데이터"}
    assert not store.path.with_name("store.json.tmp").exists()


@pytest.mark.asyncio
async def test_json_file_store_survives_reopen_and_delete(tmp_path):
    path = tmp_path / "store.json"
    await JsonFileKeyValueStore(path).set("job", "v1")

    reopened = JsonFileKeyValueStore(path)
    assert await reopened.get("job") == "v1"

    await reopened.delete("job")
    await reopened.delete("never-set")
    assert await reopened.get("job") is None


@pytest.mark.asyncio
async def test_json_file_store_treats_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[1, 2", encoding="utf-8")

    store = JsonFileKeyValueStore(path)
    assert await store.get("job") is None

    await store.set("job", "fresh")
    assert await store.get("job") == "fresh"


@pytest.mark.asyncio
async def test_sqlalchemy_store_round_trip(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kv.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    store = SQLAlchemyKeyValueStore(factory)

    try:
        assert await store.get("job") is None

        await store.set("job", "first")
        await store.set("job", "second")
        assert await store.get("job") == "second"

        await store.delete("job")
        await store.delete("job")
        assert await store.get("job") is None
    finally:
        await engine.dispose()
