"""Unit tests for the ItemExecutor."""

import pytest

from batch_engine.application.interfaces import ContentGenerator
from batch_engine.application.services.item_executor import ItemExecutor
from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationRequest,
    GenerationResult,
    GenerationSettings,
    GenerationUsage,
    ItemInput,
    ItemStatus,
)
from batch_engine.domain.exceptions import GenerationError


class FakeContentGenerator(ContentGenerator):
    """Returns canned posts; raises for topics listed in fail_topics."""

    def __init__(self, fail_topics: set[str] | None = None, cost: float = 0.01):
        self.fail_topics = fail_topics or set()
        self.cost = cost
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if request.topic in self.fail_topics:
            raise GenerationError(f"rate limited on {request.topic}", provider="fake")
        return GenerationResult(
            title=f"About {request.topic}",
            body="Body text",
            char_count=8,
            usage=GenerationUsage(input_tokens=100, output_tokens=200),
            cost=self.cost,
        )


def _job(*topics: str) -> BatchJob:
    return BatchJob(
        items=[
            BatchItem(input=ItemInput(topic=t, keywords=("k1", "k2")), order=i)
            for i, t in enumerate(topics, start=1)
        ]
    )


@pytest.mark.asyncio
async def test_execute_success_records_output_usage_and_cost():
    generator = FakeContentGenerator(cost=0.02)
    job = _job("A")
    item = job.items[0]
    settings = GenerationSettings(style="review", length="long", temperature=0.3)

    completed = await ItemExecutor(generator).execute(job, item, settings)

    assert completed is True
    assert item.status is ItemStatus.COMPLETED
    assert item.output.title == "About A"
    assert item.usage.total_tokens == 300
    assert job.cost.actual == pytest.approx(0.02)
    assert job.progress.completed == 1

    [request] = generator.requests
    assert request.keywords == ["k1", "k2"]
    assert (request.style, request.length, request.temperature) == ("review", "long", 0.3)


@pytest.mark.asyncio
async def test_execute_failure_marks_item_failed_without_raising():
    job = _job("A")
    item = job.items[0]

    completed = await ItemExecutor(FakeContentGenerator(fail_topics={"A"})).execute(
        job, item, job.global_settings
    )

    assert completed is False
    assert item.status is ItemStatus.FAILED
    assert item.error == "rate limited on A"
    assert job.progress.failed == 1
    assert job.cost.actual == 0.0


@pytest.mark.asyncio
async def test_on_start_runs_while_item_is_processing():
    job = _job("A")
    seen: list[ItemStatus] = []

    async def on_start() -> None:
        seen.append(job.items[0].status)

    await ItemExecutor(FakeContentGenerator()).execute(
        job, job.items[0], job.global_settings, on_start=on_start
    )

    assert seen == [ItemStatus.PROCESSING]


@pytest.mark.asyncio
async def test_on_start_failure_propagates():
    job = _job("A")

    async def on_start() -> None:
        raise OSError("disk full")

    with pytest.raises(OSError):
        await ItemExecutor(FakeContentGenerator()).execute(
            job, job.items[0], job.global_settings, on_start=on_start
        )
    assert job.items[0].status is ItemStatus.PROCESSING
