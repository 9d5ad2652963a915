"""Domain entities for batch generation jobs: the Job aggregate and its items."""

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from batch_engine.domain.entities.generation import GenerationUsage


class JobStatus(str, Enum):
    """Lifecycle states of a batch job."""

    IDLE = "idle"
    PROCESSING = "processing"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


class ItemStatus(str, Enum):
    """Lifecycle states of a single item within a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


RUNNABLE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.FAILED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GenerationSettings:
    """Default generation parameters applied to items without an override."""

    provider: str = "groq"
    model: str = "llama-3.3-70b-versatile"
    style: str = "casual"
    length: str = "medium"  # "short" | "medium" | "long"
    temperature: float = 0.7

    def merged(self, overrides: dict[str, Any] | None) -> "GenerationSettings":
        """Return a copy with known keys replaced; unknown or None values are ignored."""
        if not overrides:
            return replace(self)
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **changes)


@dataclass(frozen=True)
class ItemInput:
    """What the operator asked for. Never changes after the item is created."""

    topic: str
    keywords: tuple[str, ...] = ()
    additional_info: str = ""


@dataclass
class ItemOutput:
    """Generated content stored on a completed item."""

    title: str
    body: str
    char_count: int = 0


@dataclass
class BatchItem:
    """One generation request within a job, together with its outcome."""

    input: ItemInput
    order: int
    id: str = field(default_factory=lambda: f"item_{uuid.uuid4().hex}")
    status: ItemStatus = ItemStatus.PENDING
    settings: GenerationSettings | None = None  # None means inherit the job defaults
    output: ItemOutput | None = None
    error: str | None = None
    usage: GenerationUsage | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_runnable(self) -> bool:
        return self.status in RUNNABLE_STATUSES

    def mark_processing(self) -> None:
        """Transition pending -> processing."""
        if self.status is not ItemStatus.PENDING:
            raise ValueError(f"Item {self.id} cannot start from status '{self.status.value}'")
        self.status = ItemStatus.PROCESSING
        self.started_at = _utcnow()
        self.completed_at = None

    def mark_completed(self, output: ItemOutput, usage: GenerationUsage | None) -> None:
        """Transition processing -> completed with the generated output."""
        self.status = ItemStatus.COMPLETED
        self.output = output
        self.usage = usage
        self.error = None
        self.completed_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        """Transition processing -> failed, keeping only the last failure message."""
        self.status = ItemStatus.FAILED
        self.error = error or "Unknown error"
        self.output = None
        self.completed_at = _utcnow()

    def mark_requeued(self) -> None:
        """Move a failed or interrupted item back to pending for another attempt."""
        self.status = ItemStatus.PENDING
        self.error = None
        self.output = None
        self.started_at = None
        self.completed_at = None


@dataclass
class JobProgress:
    """Counters derived from the item list."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def finished(self) -> int:
        return self.completed + self.failed + self.skipped


@dataclass
class JobCost:
    """Projected and accumulated spend in USD."""

    estimated: float = 0.0
    actual: float = 0.0


@dataclass
class BatchJob:
    """Aggregate root for one batch run.

    Mutated exclusively by the BatchJobController. Progress counters are
    recomputed from the items after every mutation so they can never drift,
    including when a failed item is retried.
    """

    global_settings: GenerationSettings = field(default_factory=GenerationSettings)
    items: list[BatchItem] = field(default_factory=list)
    id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex}")
    status: JobStatus = JobStatus.IDLE
    progress: JobProgress = field(default_factory=JobProgress)
    cost: JobCost = field(default_factory=JobCost)
    created_at: datetime = field(default_factory=_utcnow)

    def effective_settings(self, item: BatchItem) -> GenerationSettings:
        return item.settings if item.settings is not None else self.global_settings

    def find_item(self, item_id: str) -> BatchItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def runnable_items(self) -> list[BatchItem]:
        """Pending and failed items in ascending order: the work of the next run."""
        return sorted((i for i in self.items if i.is_runnable), key=lambda i: i.order)

    def processing_items(self) -> list[BatchItem]:
        return [i for i in self.items if i.status is ItemStatus.PROCESSING]

    def completed_items(self) -> list[BatchItem]:
        return sorted(
            (i for i in self.items if i.status is ItemStatus.COMPLETED),
            key=lambda i: i.order,
        )

    def renumber(self) -> None:
        """Re-assign a contiguous 1..N order, preserving relative order."""
        self.items.sort(key=lambda i: i.order)
        for index, item in enumerate(self.items, start=1):
            item.order = index

    def refresh_progress(self) -> None:
        self.progress.total = len(self.items)
        self.progress.completed = sum(1 for i in self.items if i.status is ItemStatus.COMPLETED)
        self.progress.failed = sum(1 for i in self.items if i.status is ItemStatus.FAILED)

    def requeue_interrupted(self) -> list[BatchItem]:
        """Revert items left in processing back to pending. Returns the reverted items."""
        interrupted = self.processing_items()
        for item in interrupted:
            item.mark_requeued()
        if interrupted:
            self.refresh_progress()
        return interrupted
