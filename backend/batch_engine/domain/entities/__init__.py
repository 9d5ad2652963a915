from .batch_job import (
    BatchItem,
    BatchJob,
    GenerationSettings,
    ItemInput,
    ItemOutput,
    ItemStatus,
    JobCost,
    JobProgress,
    JobStatus,
)
from .chat_message import ChatMessage, TokenUsage, ChatCompletionResult
from .generation import GenerationRequest, GenerationResult, GenerationUsage

__all__ = [
    "BatchItem",
    "BatchJob",
    "GenerationSettings",
    "ItemInput",
    "ItemOutput",
    "ItemStatus",
    "JobCost",
    "JobProgress",
    "JobStatus",
    "ChatMessage",
    "TokenUsage",
    "ChatCompletionResult",
    "GenerationRequest",
    "GenerationResult",
    "GenerationUsage",
]
