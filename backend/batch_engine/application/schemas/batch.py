"""Pydantic schemas for the batch generation API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from batch_engine.domain.entities.batch_job import ItemStatus, JobStatus

Length = Literal["short", "medium", "long"]


# ── Request Schemas ──────────────────────────────────────────────────


class GenerationSettingsSchema(BaseModel):
    """Generation parameters. Omitted fields fall back to the configured defaults."""

    provider: str | None = Field(None, min_length=1, examples=["groq"])
    model: str | None = Field(None, min_length=1, examples=["llama-3.3-70b-versatile"])
    style: str | None = Field(None, min_length=1, examples=["casual"])
    length: Length | None = None
    temperature: float | None = Field(None, ge=0.0, le=2.0)

    def overrides(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ItemInputSchema(BaseModel):
    """One requested piece of content."""

    topic: str = Field(min_length=1, max_length=500, examples=["Weekend in Lisbon"])
    keywords: list[str] = Field(default_factory=list, examples=[["lisbon", "travel"]])
    additional_info: str = ""
    settings: GenerationSettingsSchema | None = None


class CreateBatchRequest(BaseModel):
    """Request body for creating a new batch job."""

    items: list[ItemInputSchema] = Field(min_length=1)
    settings: GenerationSettingsSchema | None = None


class EstimateRequest(BaseModel):
    """Request body for a cost/time projection without creating a job."""

    item_count: int = Field(ge=0)
    settings: GenerationSettingsSchema | None = None


# ── Response Schemas ─────────────────────────────────────────────────


class GenerationSettingsResponse(BaseModel):
    provider: str
    model: str
    style: str
    length: str
    temperature: float


class ItemOutputResponse(BaseModel):
    title: str
    body: str
    char_count: int


class ItemUsageResponse(BaseModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int


class BatchItemResponse(BaseModel):
    """A single item with its current outcome."""

    id: str
    order: int
    status: ItemStatus
    topic: str
    keywords: list[str]
    additional_info: str
    settings: GenerationSettingsResponse | None = None
    output: ItemOutputResponse | None = None
    error: str | None = None
    usage: ItemUsageResponse | None = None
    started_at: str | None = None
    completed_at: str | None = None


class JobProgressResponse(BaseModel):
    total: int
    completed: int
    failed: int
    skipped: int
    percent: int


class JobCostResponse(BaseModel):
    estimated: float
    actual: float


class BatchJobResponse(BaseModel):
    """The active job as returned to clients."""

    id: str
    status: JobStatus
    is_running: bool
    global_settings: GenerationSettingsResponse
    items: list[BatchItemResponse]
    progress: JobProgressResponse
    cost: JobCostResponse
    estimated_minutes: int
    created_at: str
    last_error: str | None = None


class EstimateResponse(BaseModel):
    item_count: int
    estimated_cost: float
    estimated_minutes: int
    settings: GenerationSettingsResponse


class StructuredExportItem(BaseModel):
    order: int
    topic: str
    title: str | None
    content: str | None
    keywords: list[str]


class StructuredExportResponse(BaseModel):
    """JSON export of the completed items."""

    job_id: str
    exported_at: str
    total_items: int
    items: list[StructuredExportItem]
