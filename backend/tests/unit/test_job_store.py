"""Unit tests for the JobStore snapshot format and crash recovery."""

import json

import pytest

from batch_engine.application.interfaces import KeyValueStore
from batch_engine.application.services.job_store import JobStore, job_to_snapshot
from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationSettings,
    GenerationUsage,
    ItemInput,
    ItemOutput,
    ItemStatus,
    JobStatus,
)


class FakeKeyValueStore(KeyValueStore):
    """In-memory fake key/value store for unit testing."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


def _job() -> BatchJob:
    items = [
        BatchItem(input=ItemInput(topic="A", keywords=("x", "y")), order=1),
        BatchItem(
            input=ItemInput(topic="B", additional_info="note"),
            order=2,
            settings=GenerationSettings(provider="openai", model="gpt-4o-mini"),
        ),
        BatchItem(input=ItemInput(topic="C"), order=3),
    ]
    job = BatchJob(global_settings=GenerationSettings(style="review"), items=items)
    items[0].mark_processing()
    items[0].mark_completed(
        ItemOutput(title="Title A", body="Body", char_count=4),
        GenerationUsage(input_tokens=10, output_tokens=20),
    )
    job.cost.actual = 0.25
    job.refresh_progress()
    return job


@pytest.fixture
def kv() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.mark.asyncio
async def test_save_and_load_preserves_job(kv: FakeKeyValueStore):
    store = JobStore(kv, key="job")
    job = _job()

    await store.save(job)
    loaded = await store.load()

    assert loaded is not None
    assert job_to_snapshot(loaded) == job_to_snapshot(job)
    assert loaded.items[0].usage.total_tokens == 30
    assert loaded.items[1].settings.model == "gpt-4o-mini"
    assert loaded.global_settings.style == "review"


@pytest.mark.asyncio
async def test_load_missing_returns_none(kv: FakeKeyValueStore):
    assert await JobStore(kv).load() is None


@pytest.mark.asyncio
async def test_load_recovers_interrupted_run(kv: FakeKeyValueStore):
    store = JobStore(kv, key="job")
    job = _job()
    job.status = JobStatus.PROCESSING
    job.items[1].mark_processing()
    await store.save(job)

    loaded = await store.load()

    assert loaded.status is JobStatus.PAUSED
    assert [i.status for i in loaded.items] == [
        ItemStatus.COMPLETED,
        ItemStatus.PENDING,
        ItemStatus.PENDING,
    ]
    assert loaded.items[0].output.title == "Title A"
    assert loaded.progress.completed == 1


@pytest.mark.asyncio
async def test_load_ignores_unknown_fields(kv: FakeKeyValueStore):
    snapshot = job_to_snapshot(_job())
    snapshot["schema_hint"] = "v2"
    snapshot["global_settings"]["top_p"] = 0.9
    snapshot["items"][0]["priority"] = "high"
    kv.data["job"] = json.dumps(snapshot)

    loaded = await JobStore(kv, key="job").load()

    assert loaded is not None
    assert len(loaded.items) == 3


@pytest.mark.asyncio
async def test_load_discards_unreadable_snapshot(kv: FakeKeyValueStore):
    kv.data["job"] = "{not json"
    assert await JobStore(kv, key="job").load() is None

    kv.data["job"] = json.dumps({"status": "processing"})
    assert await JobStore(kv, key="job").load() is None


@pytest.mark.asyncio
async def test_clear_removes_snapshot(kv: FakeKeyValueStore):
    store = JobStore(kv, key="job")
    await store.save(_job())
    await store.clear()

    assert "job" not in kv.data
    assert await store.load() is None
