"""Unit tests for the BatchJob aggregate and its items."""

import pytest

from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationSettings,
    ItemInput,
    ItemOutput,
    ItemStatus,
)


def _job(*topics: str) -> BatchJob:
    return BatchJob(
        items=[BatchItem(input=ItemInput(topic=t), order=i) for i, t in enumerate(topics, start=1)]
    )


def test_settings_merge_ignores_unknown_and_none_values():
    base = GenerationSettings()
    merged = base.merged({"model": "gpt-4o", "temperature": None, "colour": "blue"})

    assert merged.model == "gpt-4o"
    assert merged.temperature == base.temperature
    assert base.model == "llama-3.3-70b-versatile"


def test_item_ids_are_unique():
    job = _job("a", "b", "c")
    assert len({i.id for i in job.items}) == 3


def test_mark_processing_requires_pending():
    item = BatchItem(input=ItemInput(topic="x"), order=1)
    item.mark_processing()
    assert item.status is ItemStatus.PROCESSING
    assert item.started_at is not None

    with pytest.raises(ValueError):
        item.mark_processing()


def test_failed_then_requeued_clears_outcome():
    item = BatchItem(input=ItemInput(topic="x"), order=1)
    item.mark_processing()
    item.mark_failed("boom")
    assert item.error == "boom"
    assert item.is_runnable

    item.mark_requeued()
    assert item.status is ItemStatus.PENDING
    assert item.error is None
    assert item.started_at is None


def test_effective_settings_prefers_item_override():
    job = _job("a", "b")
    job.items[1].settings = GenerationSettings(model="gpt-4o-mini", provider="openai")

    assert job.effective_settings(job.items[0]) is job.global_settings
    assert job.effective_settings(job.items[1]).model == "gpt-4o-mini"


def test_runnable_items_follow_order_and_skip_completed():
    job = _job("a", "b", "c")
    job.items.reverse()
    job.items[0].mark_processing()  # "c"
    job.items[0].mark_completed(ItemOutput(title="C", body="..."), None)

    assert [i.input.topic for i in job.runnable_items()] == ["a", "b"]


def test_refresh_progress_is_derived_from_items():
    job = _job("a", "b", "c")
    job.items[0].mark_processing()
    job.items[0].mark_completed(ItemOutput(title="A", body="..."), None)
    job.items[1].mark_processing()
    job.items[1].mark_failed("nope")
    job.refresh_progress()
    job.refresh_progress()

    assert job.progress.total == 3
    assert job.progress.completed == 1
    assert job.progress.failed == 1
    assert job.progress.finished == 2


def test_renumber_is_contiguous_and_keeps_relative_order():
    job = _job("a", "b", "c", "d")
    job.items.pop(1)
    job.renumber()

    assert [(i.order, i.input.topic) for i in job.items] == [(1, "a"), (2, "c"), (3, "d")]


def test_requeue_interrupted_reverts_processing_items():
    job = _job("a", "b")
    job.items[0].mark_processing()

    reverted = job.requeue_interrupted()

    assert reverted == [job.items[0]]
    assert all(i.status is ItemStatus.PENDING for i in job.items)
    assert job.requeue_interrupted() == []
