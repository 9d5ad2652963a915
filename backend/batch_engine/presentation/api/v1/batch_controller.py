"""Batch API controller — job lifecycle, item management, exports, and SSE streaming."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from batch_engine.application.schemas.batch import (
    BatchItemResponse,
    BatchJobResponse,
    CreateBatchRequest,
    EstimateRequest,
    EstimateResponse,
    GenerationSettingsResponse,
    GenerationSettingsSchema,
    ItemInputSchema,
    ItemOutputResponse,
    ItemUsageResponse,
    JobCostResponse,
    JobProgressResponse,
    StructuredExportResponse,
)
from batch_engine.application.services.batch_job_controller import BatchJobController
from batch_engine.application.services.csv_importer import TEMPLATE_CSV, serialize_csv
from batch_engine.application.services.estimator import estimate_cost, estimate_minutes
from batch_engine.application.services.event_notifier import EventNotifier
from batch_engine.config import Settings, get_settings
from batch_engine.domain.entities import BatchItem, BatchJob, GenerationSettings, ItemInput
from batch_engine.domain.exceptions import (
    EntityNotFoundError,
    FormatError,
    InvalidStateError,
    ValidationError,
)
from batch_engine.infrastructure.dependencies import get_batch_controller, get_event_notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["Batch"])

_DOMAIN_ERRORS = (ValidationError, FormatError, InvalidStateError, EntityNotFoundError)


# ── Helpers ──────────────────────────────────────────────────────────


def _http_error(exc: Exception) -> HTTPException:
    """Map a domain exception to its HTTP status."""
    if isinstance(exc, EntityNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _settings_to_response(settings: GenerationSettings) -> GenerationSettingsResponse:
    return GenerationSettingsResponse(
        provider=settings.provider,
        model=settings.model,
        style=settings.style,
        length=settings.length,
        temperature=settings.temperature,
    )


def _item_to_response(item: BatchItem) -> BatchItemResponse:
    """Map a BatchItem domain entity to its API response."""
    return BatchItemResponse(
        id=item.id,
        order=item.order,
        status=item.status,
        topic=item.input.topic,
        keywords=list(item.input.keywords),
        additional_info=item.input.additional_info,
        settings=_settings_to_response(item.settings) if item.settings else None,
        output=ItemOutputResponse(
            title=item.output.title,
            body=item.output.body,
            char_count=item.output.char_count,
        )
        if item.output
        else None,
        error=item.error,
        usage=ItemUsageResponse(
            input_tokens=item.usage.input_tokens,
            output_tokens=item.usage.output_tokens,
            total_tokens=item.usage.total_tokens,
        )
        if item.usage
        else None,
        started_at=item.started_at.isoformat() if item.started_at else None,
        completed_at=item.completed_at.isoformat() if item.completed_at else None,
    )


def _job_to_response(
    job: BatchJob, controller: BatchJobController, settings: Settings
) -> BatchJobResponse:
    """Map the BatchJob aggregate to its API response."""
    remaining = len(job.runnable_items()) + len(job.processing_items())
    return BatchJobResponse(
        id=job.id,
        status=job.status,
        is_running=controller.is_running,
        global_settings=_settings_to_response(job.global_settings),
        items=[_item_to_response(i) for i in sorted(job.items, key=lambda i: i.order)],
        progress=JobProgressResponse(
            total=job.progress.total,
            completed=job.progress.completed,
            failed=job.progress.failed,
            skipped=job.progress.skipped,
            percent=controller.get_progress_percent(),
        ),
        cost=JobCostResponse(estimated=job.cost.estimated, actual=job.cost.actual),
        estimated_minutes=estimate_minutes(
            remaining,
            settings.batch_average_seconds_per_item,
            settings.batch_item_delay_seconds,
        ),
        created_at=job.created_at.isoformat(),
        last_error=controller.last_error,
    )


def _current_job_response(
    controller: BatchJobController, settings: Settings
) -> BatchJobResponse:
    job = controller.get_job()
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No batch job exists")
    return _job_to_response(job, controller, settings)


def _to_item_input(schema: ItemInputSchema) -> ItemInput:
    return ItemInput(
        topic=schema.topic,
        keywords=tuple(schema.keywords),
        additional_info=schema.additional_info,
    )


def _overrides(schema: GenerationSettingsSchema | None) -> dict | None:
    return schema.overrides() if schema else None


# ── Job lifecycle ────────────────────────────────────────────────────


@router.get("", response_model=BatchJobResponse)
async def get_batch(
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Return the active job."""
    return _current_job_response(controller, settings)


@router.post("", response_model=BatchJobResponse, status_code=status.HTTP_201_CREATED)
async def create_batch(
    request: CreateBatchRequest,
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Create a new job, replacing any previous one."""
    try:
        job = await controller.create_job(
            [_to_item_input(i) for i in request.items],
            _overrides(request.settings),
            item_overrides=[_overrides(i.settings) for i in request.items],
        )
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return _job_to_response(job, controller, settings)


@router.post("/import", response_model=BatchJobResponse, status_code=status.HTTP_201_CREATED)
async def import_batch(
    file: UploadFile,
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Create a new job from an uploaded CSV file."""
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="CSV file must be UTF-8 encoded",
        )

    try:
        job = await controller.import_csv(text)
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    logger.info("Imported %d item(s) from '%s'", len(job.items), file.filename)
    return _job_to_response(job, controller, settings)


@router.get("/template")
async def download_template() -> PlainTextResponse:
    """Return a sample CSV showing the accepted columns."""
    return PlainTextResponse(
        TEMPLATE_CSV,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="batch_template.csv"'},
    )


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_batch(
    request: EstimateRequest,
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> EstimateResponse:
    """Project cost and duration for a batch without creating it."""
    generation = controller.default_settings.merged(_overrides(request.settings))
    return EstimateResponse(
        item_count=request.item_count,
        estimated_cost=estimate_cost(request.item_count, generation),
        estimated_minutes=estimate_minutes(
            request.item_count,
            settings.batch_average_seconds_per_item,
            settings.batch_item_delay_seconds,
        ),
        settings=_settings_to_response(generation),
    )


@router.post("/start", response_model=BatchJobResponse)
async def start_batch(
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Start processing the active job in the background."""
    try:
        await controller.start()
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return _current_job_response(controller, settings)


@router.post("/pause", response_model=BatchJobResponse)
async def pause_batch(
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Request a pause; takes effect after the in-flight item."""
    await controller.pause()
    return _current_job_response(controller, settings)


@router.post("/resume", response_model=BatchJobResponse)
async def resume_batch(
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Resume a paused job."""
    try:
        await controller.resume()
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return _current_job_response(controller, settings)


@router.post("/stop", response_model=BatchJobResponse)
async def stop_batch(
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Stop the active job."""
    await controller.stop()
    return _current_job_response(controller, settings)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def reset_batch(
    controller: BatchJobController = Depends(get_batch_controller),
) -> Response:
    """Discard the active job and its persisted snapshot."""
    await controller.reset()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/progress")
async def get_progress(
    controller: BatchJobController = Depends(get_batch_controller),
) -> dict:
    """Lightweight progress poll."""
    job = controller.get_job()
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No batch job exists")
    return {
        "job_id": job.id,
        "status": job.status.value,
        "is_running": controller.is_running,
        "total": job.progress.total,
        "completed": job.progress.completed,
        "failed": job.progress.failed,
        "skipped": job.progress.skipped,
        "percent": controller.get_progress_percent(),
    }


# ── Items & settings ─────────────────────────────────────────────────


@router.post("/items", response_model=BatchItemResponse, status_code=status.HTTP_201_CREATED)
async def add_item(
    request: ItemInputSchema,
    controller: BatchJobController = Depends(get_batch_controller),
) -> BatchItemResponse:
    """Append an item to the active job."""
    try:
        item = await controller.add_item(_to_item_input(request), _overrides(request.settings))
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return _item_to_response(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(
    item_id: str,
    controller: BatchJobController = Depends(get_batch_controller),
) -> Response:
    """Remove an item from the active job."""
    try:
        await controller.remove_item(item_id)
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/settings", response_model=BatchJobResponse)
async def update_settings(
    request: GenerationSettingsSchema,
    controller: BatchJobController = Depends(get_batch_controller),
    settings: Settings = Depends(get_settings),
) -> BatchJobResponse:
    """Change the job's global generation settings."""
    try:
        job = await controller.update_settings(request.overrides())
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    return _job_to_response(job, controller, settings)


# ── Exports ──────────────────────────────────────────────────────────


@router.get("/export/json", response_model=StructuredExportResponse)
async def export_json(
    controller: BatchJobController = Depends(get_batch_controller),
) -> dict:
    """Export completed items as structured records."""
    try:
        return controller.export_as_structured_records()
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)


@router.get("/export/markdown")
async def export_markdown(
    controller: BatchJobController = Depends(get_batch_controller),
) -> PlainTextResponse:
    """Export completed items as one markdown document."""
    try:
        document = controller.export_as_document_bundle()
    except _DOMAIN_ERRORS as e:
        raise _http_error(e)
    filename = f"batch_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.md"
    return PlainTextResponse(
        document,
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/csv")
async def export_inputs_csv(
    controller: BatchJobController = Depends(get_batch_controller),
) -> PlainTextResponse:
    """Export the job's item inputs in the import layout, so a batch can be re-run."""
    job = controller.get_job()
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No batch job exists")
    return PlainTextResponse(
        serialize_csv([item.input for item in job.items]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{job.id}_inputs.csv"'},
    )


# ── SSE ──────────────────────────────────────────────────────────────


@router.get("/events")
async def stream_events(
    notifier: EventNotifier = Depends(get_event_notifier),
) -> StreamingResponse:
    """SSE endpoint for real-time batch events.

    Clients connect via EventSource and receive one named event per
    lifecycle transition, each carrying the full job snapshot.
    """
    return StreamingResponse(
        notifier.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
