"""Read-only exports of a job's completed items. No side effects."""

from datetime import datetime, timezone
from typing import Any

from batch_engine.domain.entities import BatchJob


def export_structured_records(job: BatchJob, exported_at: datetime | None = None) -> dict[str, Any]:
    """Project completed items into JSON-ready records."""
    exported_at = exported_at or datetime.now(timezone.utc)
    completed = job.completed_items()
    return {
        "job_id": job.id,
        "exported_at": exported_at.isoformat(),
        "total_items": len(completed),
        "items": [
            {
                "order": item.order,
                "topic": item.input.topic,
                "title": item.output.title if item.output else None,
                "content": item.output.body if item.output else None,
                "keywords": list(item.input.keywords),
            }
            for item in completed
        ],
    }


def export_document_bundle(job: BatchJob, exported_at: datetime | None = None) -> str:
    """Project completed items into a single markdown document."""
    exported_at = exported_at or datetime.now(timezone.utc)
    completed = job.completed_items()

    parts = [
        "# Batch generation results\n\n",
        f"Generated: {exported_at.date().isoformat()}\n",
        f"Total: {len(completed)} posts\n\n---\n\n",
    ]
    for index, item in enumerate(completed, start=1):
        title = item.output.title if item.output and item.output.title else item.input.topic
        body = item.output.body if item.output else ""
        parts.append(f"## {index}. {title}\n\n{body}\n\n---\n\n")

    return "".join(parts)
