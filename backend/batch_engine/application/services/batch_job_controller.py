"""Batch Job Controller — owns the active job and runs it item by item.

The controller is the only component that mutates a BatchJob. Items run
strictly one at a time in an asyncio task; pause and stop are cooperative
and only take effect between items, never while a generation call is in
flight. Every state change is written to the JobStore as a full snapshot
before the corresponding event is published.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from batch_engine.application.services.batch_exporter import (
    export_document_bundle,
    export_structured_records,
)
from batch_engine.application.services.csv_importer import parse_csv
from batch_engine.application.services.estimator import (
    AVERAGE_OUTPUT_TOKENS_BY_LENGTH,
    estimate_cost,
)
from batch_engine.application.services.event_notifier import BatchEvent, EventNotifier
from batch_engine.application.services.item_executor import ItemExecutor
from batch_engine.application.services.job_store import JobStore
from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationSettings,
    ItemInput,
    ItemStatus,
    JobStatus,
)
from batch_engine.domain.exceptions import (
    EntityNotFoundError,
    InvalidStateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 50
DEFAULT_ITEM_DELAY_SECONDS = 2.0
RUN_TASK_PREFIX = "batch-run-"


class StopReason(str, Enum):
    """Why a run was asked to halt."""

    PAUSE = "pause"
    STOP = "stop"
    RESET = "reset"


class CancellationToken:
    """Cooperative cancellation for one run, checked by the loop between items."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: StopReason | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: StopReason) -> None:
        # a stronger request (stop/reset) overrides an earlier pause
        if self.reason is None or self.reason is StopReason.PAUSE:
            self.reason = reason
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to seconds, waking early on cancellation. Returns is_cancelled."""
        if seconds > 0 and not self.is_cancelled:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        return self.is_cancelled


class BatchJobController:
    """Creates, runs, pauses, resumes, stops and resets the single active job."""

    def __init__(
        self,
        job_store: JobStore,
        executor: ItemExecutor,
        notifier: EventNotifier,
        *,
        max_items: int = DEFAULT_MAX_ITEMS,
        item_delay_seconds: float = DEFAULT_ITEM_DELAY_SECONDS,
        default_settings: GenerationSettings | None = None,
    ) -> None:
        self._store = job_store
        self._executor = executor
        self._notifier = notifier
        self._max_items = max_items
        self._item_delay = item_delay_seconds
        self._default_settings = default_settings or GenerationSettings()

        self._job: BatchJob | None = None
        self._lock = asyncio.Lock()
        self._running = False
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_error: str | None = None

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def max_items(self) -> int:
        return self._max_items

    @property
    def default_settings(self) -> GenerationSettings:
        return self._default_settings

    def get_job(self) -> BatchJob | None:
        return self._job

    def get_progress_percent(self) -> int:
        """Share of items with a final outcome, 0–100."""
        if self._job is None or self._job.progress.total == 0:
            return 0
        progress = self._job.progress
        return round(progress.finished / progress.total * 100)

    def export_as_structured_records(self, exported_at: datetime | None = None) -> dict[str, Any]:
        return export_structured_records(self._require_job(), exported_at)

    def export_as_document_bundle(self, exported_at: datetime | None = None) -> str:
        return export_document_bundle(self._require_job(), exported_at)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def restore(self) -> BatchJob | None:
        """Load the persisted job at startup. Never resumes a run automatically."""
        async with self._lock:
            job = await self._store.load()
            self._job = job
            if job is not None:
                await self._store.save(job)
                logger.info(
                    "Restored job %s (%s): %d/%d items done",
                    job.id,
                    job.status.value,
                    job.progress.finished,
                    job.progress.total,
                )
        return job

    async def create_job(
        self,
        inputs: Sequence[ItemInput],
        global_settings: GenerationSettings | dict[str, Any] | None = None,
        *,
        item_overrides: Sequence[dict[str, Any] | None] | None = None,
    ) -> BatchJob:
        """Replace any previous job with a new idle one.

        Raises:
            ValidationError: no items, too many items, a blank topic, or
                invalid generation settings.
            InvalidStateError: a run is in progress.
        """
        normalized = self._validate_inputs(inputs)
        settings = self._resolve_settings(global_settings)
        overrides = list(item_overrides or [])

        async with self._lock:
            self._ensure_idle("create a new job")
            items = [
                BatchItem(
                    input=item_input,
                    order=index,
                    settings=self._item_settings(settings, overrides[index - 1])
                    if index <= len(overrides)
                    else None,
                )
                for index, item_input in enumerate(normalized, start=1)
            ]
            job = BatchJob(global_settings=settings, items=items)
            job.refresh_progress()
            self._refresh_estimate(job)

            if self._job is not None:
                logger.info("Discarding job %s in favour of a new job", self._job.id)
            self._job = job
            self.last_error = None
            await self._store.save(job)

        logger.info(
            "Created job %s with %d item(s), estimated $%.4f",
            job.id,
            len(job.items),
            job.cost.estimated,
        )
        await self._notifier.publish(BatchEvent.CREATED, job)
        return job

    async def import_csv(
        self,
        text: str,
        global_settings: GenerationSettings | dict[str, Any] | None = None,
    ) -> BatchJob:
        """Parse CSV text and create a job from its rows. FormatError leaves state untouched."""
        return await self.create_job(parse_csv(text), global_settings)

    async def start(self) -> None:
        """Begin processing pending and failed items in order.

        Returns once the run is launched; use join() to wait for it to end.

        Raises:
            InvalidStateError: no job exists or a run is already in progress.
        """
        await self._launch(require_paused=False)

    async def resume(self) -> None:
        """Continue a paused job.

        Raises:
            InvalidStateError: no job exists or the job is not paused.
        """
        await self._launch(require_paused=True)

    async def pause(self) -> None:
        """Ask the run to halt after the in-flight item. No-op when not running."""
        token = self._token
        if not self._running or token is None or token.is_cancelled:
            return
        token.cancel(StopReason.PAUSE)
        logger.info("Pause requested for job %s", self._job.id if self._job else "-")
        await self._notifier.publish(BatchEvent.PAUSING, self._job)

    async def stop(self) -> None:
        """Halt the job and mark it stopped.

        A running job stops after the in-flight item; any item left
        processing (only possible after an unclean shutdown) returns to
        pending. No-op without a job.
        """
        async with self._lock:
            if self._running:
                if self._token is not None:
                    self._token.cancel(StopReason.STOP)
                logger.info("Stop requested for job %s", self._job.id if self._job else "-")
                return

            job = self._job
            if job is None:
                return
            job.requeue_interrupted()
            job.status = JobStatus.STOPPED
            await self._store.save(job)

        logger.info("Job %s stopped", job.id)
        await self._notifier.publish(BatchEvent.STOPPED, job)

    async def reset(self) -> None:
        """Discard the job entirely and clear persisted state."""
        if self._running and self._task is asyncio.current_task():
            raise InvalidStateError("A run cannot reset its own job; stop it first")
        while True:
            if self._running and self._token is not None:
                self._token.cancel(StopReason.RESET)
            await self._idle.wait()
            await self.join()
            async with self._lock:
                if self._running:
                    continue
                discarded = self._job
                self._job = None
                self._token = None
                self.last_error = None
                await self._store.clear()
                break

        if discarded is not None:
            logger.info("Job %s reset", discarded.id)
        await self._notifier.publish(BatchEvent.RESET, None)

    async def join(self) -> None:
        """Wait until the current run (if any) has finished."""
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.shield(task)

    async def shutdown(self) -> None:
        """Pause any run and wait for its final snapshot to be written."""
        await self.pause()
        await self.join()

    # ── Item management ──────────────────────────────────────────────

    async def add_item(
        self, item_input: ItemInput, settings: dict[str, Any] | None = None
    ) -> BatchItem:
        """Append an item to the job.

        Raises:
            InvalidStateError: no job, or the job is processing.
            ValidationError: blank topic, invalid settings, or the job is full.
        """
        normalized = self._normalize_input(item_input, position=None)

        async with self._lock:
            job = self._require_job()
            self._ensure_idle("add items")
            if len(job.items) >= self._max_items:
                raise ValidationError(f"A batch can hold at most {self._max_items} items")

            item = BatchItem(
                input=normalized,
                order=len(job.items) + 1,
                settings=self._item_settings(job.global_settings, settings),
            )
            job.items.append(item)
            job.renumber()
            job.refresh_progress()
            self._refresh_estimate(job)
            await self._store.save(job)

        logger.info("Job %s: added item %s (#%d)", job.id, item.id, item.order)
        await self._notifier.publish(BatchEvent.ITEM_ADDED, job, item)
        return item

    async def remove_item(self, item_id: str) -> None:
        """Remove an item and renumber the rest.

        Raises:
            EntityNotFoundError: no item with item_id.
            InvalidStateError: no job, the item is processing, or a run is active.
        """
        async with self._lock:
            job = self._require_job()
            item = job.find_item(item_id)
            if item is None:
                raise EntityNotFoundError("BatchItem", item_id)
            if item.status is ItemStatus.PROCESSING:
                raise InvalidStateError("Cannot remove an item that is being processed")
            self._ensure_idle("remove items")

            job.items.remove(item)
            job.renumber()
            job.refresh_progress()
            self._refresh_estimate(job)
            await self._store.save(job)

        logger.info("Job %s: removed item %s", job.id, item_id)
        await self._notifier.publish(BatchEvent.ITEM_REMOVED, job, item_id=item_id)

    async def update_settings(self, overrides: dict[str, Any]) -> BatchJob:
        """Merge overrides into the job's global settings and re-estimate cost."""
        async with self._lock:
            job = self._require_job()
            self._ensure_idle("change settings")
            job.global_settings = self._resolve_settings(job.global_settings.merged(overrides))
            self._refresh_estimate(job)
            await self._store.save(job)

        await self._notifier.publish(BatchEvent.SETTINGS_UPDATED, job)
        return job

    # ── Run loop ─────────────────────────────────────────────────────

    async def _launch(self, *, require_paused: bool) -> None:
        async with self._lock:
            job = self._require_job()
            if self._running:
                raise InvalidStateError("A batch run is already in progress")
            if require_paused and job.status is not JobStatus.PAUSED:
                raise InvalidStateError(
                    f"Only a paused job can be resumed (status is '{job.status.value}')"
                )
            if job.processing_items():
                raise InvalidStateError("Job has interrupted items; restore or stop it first")

            previous = job.status
            job.status = JobStatus.PROCESSING
            try:
                await self._store.save(job)
            except Exception:
                job.status = previous
                raise

            token = CancellationToken()
            self._token = token
            self._running = True
            self._idle.clear()
            self.last_error = None
            self._task = asyncio.create_task(
                self._run(job, token), name=f"{RUN_TASK_PREFIX}{job.id}"
            )

        logger.info(
            "%s job %s: %d item(s) to run",
            "Resuming" if require_paused else "Starting",
            job.id,
            len(job.runnable_items()),
        )

    async def _run(self, job: BatchJob, token: CancellationToken) -> None:
        """Execute the run's queue one item at a time until done or cancelled."""
        await self._notifier.publish(BatchEvent.STARTED, job)
        queue = [item.id for item in job.runnable_items()]
        halted = False

        try:
            for position, item_id in enumerate(queue):
                if token.is_cancelled:
                    halted = True
                    break

                async with self._lock:
                    item = job.find_item(item_id)
                    if item is None or not item.is_runnable:
                        continue
                    if item.status is ItemStatus.FAILED:
                        item.mark_requeued()

                async def on_start(item: BatchItem = item) -> None:
                    async with self._lock:
                        await self._store.save(job)
                    await self._notifier.publish(BatchEvent.ITEM_START, job, item)

                completed = await self._executor.execute(
                    job, item, job.effective_settings(item), on_start=on_start
                )
                async with self._lock:
                    await self._store.save(job)
                await self._notifier.publish(
                    BatchEvent.ITEM_COMPLETE if completed else BatchEvent.ITEM_ERROR, job, item
                )

                if position < len(queue) - 1:
                    await token.sleep(self._item_delay)
        except Exception as exc:
            await self._abort(job, exc)
            return

        if halted or token.reason in (StopReason.STOP, StopReason.RESET):
            await self._halt(job, token.reason or StopReason.PAUSE)
        else:
            await self._finish(job)

    async def _finish(self, job: BatchJob) -> None:
        async with self._lock:
            job.status = JobStatus.COMPLETED
            self._set_idle()
            await self._store.save(job)

        logger.info(
            "Job %s completed: %d completed, %d failed of %d, actual cost $%.4f",
            job.id,
            job.progress.completed,
            job.progress.failed,
            job.progress.total,
            job.cost.actual,
        )
        await self._notifier.publish(BatchEvent.COMPLETED, job)

    async def _halt(self, job: BatchJob, reason: StopReason) -> None:
        stopped = reason is not StopReason.PAUSE
        async with self._lock:
            job.requeue_interrupted()
            job.status = JobStatus.STOPPED if stopped else JobStatus.PAUSED
            self._set_idle()
            await self._store.save(job)

        logger.info("Job %s %s", job.id, job.status.value)
        await self._notifier.publish(BatchEvent.STOPPED if stopped else BatchEvent.PAUSED, job)

    async def _abort(self, job: BatchJob, exc: Exception) -> None:
        """Leave the job paused after an unexpected failure inside the loop."""
        logger.exception("Batch run for job %s aborted", job.id)
        self.last_error = str(exc) or type(exc).__name__

        async with self._lock:
            job.requeue_interrupted()
            job.status = JobStatus.PAUSED
            self._set_idle()
            try:
                await self._store.save(job)
            except Exception:
                logger.exception("Could not persist job %s after aborted run", job.id)

        await self._notifier.publish(BatchEvent.PAUSED, job)

    # ── Helpers ──────────────────────────────────────────────────────

    def _set_idle(self) -> None:
        self._running = False
        self._idle.set()

    def _require_job(self) -> BatchJob:
        if self._job is None:
            raise InvalidStateError("No batch job exists")
        return self._job

    def _ensure_idle(self, action: str) -> None:
        if self._running or (self._job is not None and self._job.status is JobStatus.PROCESSING):
            raise InvalidStateError(f"Cannot {action} while the job is processing")

    def _refresh_estimate(self, job: BatchJob) -> None:
        job.cost.estimated = sum(
            estimate_cost(1, job.effective_settings(item)) for item in job.items
        )

    def _resolve_settings(
        self, settings: GenerationSettings | dict[str, Any] | None
    ) -> GenerationSettings:
        resolved = (
            settings
            if isinstance(settings, GenerationSettings)
            else self._default_settings.merged(settings)
        )
        if resolved.length not in AVERAGE_OUTPUT_TOKENS_BY_LENGTH:
            raise ValidationError(f"Unknown length '{resolved.length}'")
        try:
            temperature = float(resolved.temperature)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid temperature {resolved.temperature!r}") from None
        if not 0.0 <= temperature <= 2.0:
            raise ValidationError("Temperature must be between 0.0 and 2.0")
        if not resolved.provider or not resolved.model:
            raise ValidationError("Provider and model are required")
        return resolved

    def _item_settings(
        self, base: GenerationSettings, overrides: dict[str, Any] | None
    ) -> GenerationSettings | None:
        if not overrides:
            return None
        return self._resolve_settings(base.merged(overrides))

    def _validate_inputs(self, inputs: Sequence[ItemInput]) -> list[ItemInput]:
        if not inputs:
            raise ValidationError("At least one item is required")
        if len(inputs) > self._max_items:
            raise ValidationError(f"A batch can hold at most {self._max_items} items")
        return [self._normalize_input(i, position) for position, i in enumerate(inputs, start=1)]

    @staticmethod
    def _normalize_input(item_input: ItemInput, position: int | None) -> ItemInput:
        topic = (item_input.topic or "").strip()
        if not topic:
            where = f"Item {position}" if position is not None else "Item"
            raise ValidationError(f"{where} is missing a topic")
        return ItemInput(
            topic=topic,
            keywords=tuple(k.strip() for k in item_input.keywords if k and k.strip()),
            additional_info=(item_input.additional_info or "").strip(),
        )
