from .batch_job_controller import BatchJobController, CancellationToken, StopReason
from .event_notifier import BatchEvent, BatchEventPayload, EventNotifier
from .item_executor import ItemExecutor
from .job_store import JobStore

__all__ = [
    "BatchJobController",
    "CancellationToken",
    "StopReason",
    "BatchEvent",
    "BatchEventPayload",
    "EventNotifier",
    "ItemExecutor",
    "JobStore",
]
