"""Unit tests for the structured-record and document-bundle exports."""

from datetime import datetime, timezone

from batch_engine.application.services.batch_exporter import (
    export_document_bundle,
    export_structured_records,
)
from batch_engine.domain.entities import BatchItem, BatchJob, ItemInput, ItemOutput

EXPORTED_AT = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def _job() -> BatchJob:
    items = [
        BatchItem(input=ItemInput(topic=t, keywords=("kw",)), order=i)
        for i, t in enumerate(["A", "B", "C"], start=1)
    ]
    items[2].mark_processing()
    items[2].mark_completed(ItemOutput(title="Title C", body="Body C"), None)
    items[0].mark_processing()
    items[0].mark_completed(ItemOutput(title="Title A", body="Body A"), None)
    items[1].mark_processing()
    items[1].mark_failed("boom")
    return BatchJob(items=items)


def test_structured_records_include_only_completed_items_in_order():
    job = _job()

    export = export_structured_records(job, EXPORTED_AT)

    assert export["job_id"] == job.id
    assert export["exported_at"] == "2026-03-01T09:30:00+00:00"
    assert export["total_items"] == 2
    assert export["items"] == [
        {"order": 1, "topic": "A", "title": "Title A", "content": "Body A", "keywords": ["kw"]},
        {"order": 3, "topic": "C", "title": "Title C", "content": "Body C", "keywords": ["kw"]},
    ]


def test_document_bundle_renders_sections():
    document = export_document_bundle(_job(), EXPORTED_AT)

    assert document.startswith("# Batch generation results\n\nGenerated: 2026-03-01\nTotal: 2 posts\n")
    assert "## 1. Title A\n\nBody A\n" in document
    assert "## 2. Title C\n\nBody C\n" in document
    assert "boom" not in document


def test_exports_of_job_without_completed_items():
    job = BatchJob(items=[BatchItem(input=ItemInput(topic="A"), order=1)])

    assert export_structured_records(job, EXPORTED_AT)["items"] == []
    assert "Total: 0 posts" in export_document_bundle(job, EXPORTED_AT)
