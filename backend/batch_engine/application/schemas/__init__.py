from .batch import (
    BatchItemResponse,
    BatchJobResponse,
    CreateBatchRequest,
    EstimateRequest,
    EstimateResponse,
    GenerationSettingsSchema,
    ItemInputSchema,
    StructuredExportResponse,
)

__all__ = [
    "BatchItemResponse",
    "BatchJobResponse",
    "CreateBatchRequest",
    "EstimateRequest",
    "EstimateResponse",
    "GenerationSettingsSchema",
    "ItemInputSchema",
    "StructuredExportResponse",
]
