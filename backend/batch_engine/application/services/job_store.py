"""Job Store — durable snapshot of the single active batch job.

The store holds exactly one job under a fixed key. Every save is a full
snapshot replace; loading is the only recovery path after a restart, so
crash recovery is applied here:

- an item found ``processing`` was interrupted mid-generation and is put back
  to ``pending`` so the next run retries it;
- a job found ``processing`` is surfaced as ``paused`` and waits for an
  explicit resume.
"""

import json
import logging
from dataclasses import asdict, fields
from datetime import datetime
from typing import Any

from batch_engine.application.interfaces.key_value_store import KeyValueStore
from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationSettings,
    GenerationUsage,
    ItemInput,
    ItemOutput,
    ItemStatus,
    JobCost,
    JobProgress,
    JobStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "batch_engine.current_job"


# ── Snapshot encoding ────────────────────────────────────────────────


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _known(cls, data: dict[str, Any] | None) -> dict[str, Any]:
    """Keep only keys that are fields of the dataclass; unknown keys are ignored."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in names}


def item_to_snapshot(item: BatchItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "order": item.order,
        "status": item.status.value,
        "input": {
            "topic": item.input.topic,
            "keywords": list(item.input.keywords),
            "additional_info": item.input.additional_info,
        },
        "settings": asdict(item.settings) if item.settings else None,
        "output": asdict(item.output) if item.output else None,
        "error": item.error,
        "usage": asdict(item.usage) if item.usage else None,
        "started_at": _iso(item.started_at),
        "completed_at": _iso(item.completed_at),
    }


def job_to_snapshot(job: BatchJob) -> dict[str, Any]:
    """Serialize the whole job into a JSON-compatible dict."""
    return {
        "id": job.id,
        "status": job.status.value,
        "created_at": _iso(job.created_at),
        "global_settings": asdict(job.global_settings),
        "items": [item_to_snapshot(i) for i in job.items],
        "progress": asdict(job.progress),
        "cost": asdict(job.cost),
    }


def item_from_snapshot(data: dict[str, Any]) -> BatchItem:
    raw_input = data["input"]
    return BatchItem(
        id=data["id"],
        order=int(data["order"]),
        status=ItemStatus(data["status"]),
        input=ItemInput(
            topic=raw_input.get("topic", ""),
            keywords=tuple(raw_input.get("keywords") or ()),
            additional_info=raw_input.get("additional_info", ""),
        ),
        settings=GenerationSettings(**_known(GenerationSettings, data["settings"]))
        if data.get("settings")
        else None,
        output=ItemOutput(**_known(ItemOutput, data["output"])) if data.get("output") else None,
        error=data.get("error"),
        usage=GenerationUsage(**_known(GenerationUsage, data["usage"]))
        if data.get("usage")
        else None,
        started_at=_parse_dt(data.get("started_at")),
        completed_at=_parse_dt(data.get("completed_at")),
    )


def job_from_snapshot(data: dict[str, Any]) -> BatchJob:
    """Rebuild a job from a snapshot dict. Unknown fields are tolerated."""
    job = BatchJob(
        id=data["id"],
        status=JobStatus(data["status"]),
        global_settings=GenerationSettings(**_known(GenerationSettings, data.get("global_settings"))),
        items=[item_from_snapshot(i) for i in data.get("items", [])],
        progress=JobProgress(**_known(JobProgress, data.get("progress"))),
        cost=JobCost(**_known(JobCost, data.get("cost"))),
    )
    created_at = _parse_dt(data.get("created_at"))
    if created_at:
        job.created_at = created_at
    job.renumber()
    job.refresh_progress()
    return job


# ── Store ────────────────────────────────────────────────────────────


class JobStore:
    """Persists the active job through an injected KeyValueStore."""

    def __init__(self, kv_store: KeyValueStore, key: str = DEFAULT_STORAGE_KEY) -> None:
        self._kv = kv_store
        self._key = key

    async def save(self, job: BatchJob) -> None:
        """Write a full snapshot of job, replacing the previous one."""
        await self._kv.set(self._key, json.dumps(job_to_snapshot(job), ensure_ascii=False))

    async def load(self) -> BatchJob | None:
        """Load the last snapshot and apply crash recovery.

        A snapshot that cannot be decoded is logged and treated as absent.
        """
        raw = await self._kv.get(self._key)
        if raw is None:
            return None

        try:
            job = job_from_snapshot(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable job snapshot '%s': %s", self._key, exc)
            return None

        interrupted = job.requeue_interrupted()
        if interrupted:
            logger.warning(
                "Job %s: %d item(s) interrupted mid-generation were reset to pending: %s",
                job.id,
                len(interrupted),
                ", ".join(i.id for i in interrupted),
            )
        if job.status is JobStatus.PROCESSING:
            job.status = JobStatus.PAUSED
            logger.info("Job %s was processing at shutdown; surfaced as paused", job.id)

        return job

    async def clear(self) -> None:
        """Remove the persisted snapshot."""
        await self._kv.delete(self._key)
