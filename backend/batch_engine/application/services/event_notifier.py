"""Event Notifier — in-process publish/subscribe for batch lifecycle events."""

import asyncio
import inspect
import json
import logging
from collections import defaultdict
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from batch_engine.application.services.job_store import item_to_snapshot, job_to_snapshot
from batch_engine.domain.entities import BatchItem, BatchJob

logger = logging.getLogger(__name__)


class BatchEvent(str, Enum):
    """Lifecycle transitions announced by the batch controller."""

    CREATED = "created"
    STARTED = "started"
    ITEM_START = "item_start"
    ITEM_COMPLETE = "item_complete"
    ITEM_ERROR = "item_error"
    PAUSING = "pausing"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"
    RESET = "reset"
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    SETTINGS_UPDATED = "settings_updated"


@dataclass
class BatchEventPayload:
    """What every subscriber receives: the event, the job, and the affected item if any."""

    event: BatchEvent
    job: BatchJob | None
    item: BatchItem | None = None
    item_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.value,
            "job": job_to_snapshot(self.job) if self.job else None,
            "item": item_to_snapshot(self.item) if self.item else None,
            "item_id": self.item_id or (self.item.id if self.item else None),
        }


Listener = Callable[[BatchEventPayload], Awaitable[None] | None]


class EventNotifier:
    """Delivers batch events to in-process listeners and SSE clients.

    Listeners are plain or async callables registered per event. A failing
    listener is logged and skipped so an observer can never break a run.

    SSE clients each get their own bounded asyncio.Queue; a client that
    stops draining its queue is disconnected.
    """

    def __init__(self, max_queue_size: int = 256) -> None:
        self._listeners: dict[BatchEvent, list[Listener]] = defaultdict(list)
        self._queues: list[asyncio.Queue[str | None]] = []
        self._max_queue_size = max_queue_size

    def subscribe(self, event: BatchEvent, listener: Listener) -> None:
        """Register listener for event."""
        self._listeners[event].append(listener)

    def unsubscribe(self, event: BatchEvent, listener: Listener) -> None:
        """Remove a previously registered listener. Unknown listeners are ignored."""
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    async def stream(self) -> AsyncGenerator[str, None]:
        """Subscribe to all events as SSE-formatted strings.

        The generator automatically unsubscribes when the client disconnects.
        """
        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=self._max_queue_size)
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    async def publish(
        self,
        event: BatchEvent,
        job: BatchJob | None,
        item: BatchItem | None = None,
        *,
        item_id: str | None = None,
    ) -> None:
        """Announce event to every listener and SSE client."""
        payload = BatchEventPayload(event=event, job=job, item=item, item_id=item_id)

        for listener in list(self._listeners[event]):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for batch event '%s' failed", event.value)

        if self._queues:
            self._broadcast(event, payload.to_dict())

    def _broadcast(self, event: BatchEvent, data: dict[str, Any]) -> None:
        sse_message = f"event: {event.value}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
        dead_queues: list[asyncio.Queue[str | None]] = []

        for queue in self._queues:
            try:
                queue.put_nowait(sse_message)
            except asyncio.QueueFull:
                dead_queues.append(queue)
                logger.warning("SSE client queue full, disconnecting")

        for q in dead_queues:
            self._queues.remove(q)
            # make room for the sentinel so the client's generator terminates
            while not q.empty():
                q.get_nowait()
            q.put_nowait(None)

    async def shutdown(self) -> None:
        """Disconnect all SSE clients and drop listeners."""
        for queue in self._queues:
            while queue.full():
                queue.get_nowait()
            queue.put_nowait(None)
        self._queues.clear()
        self._listeners.clear()

    @property
    def client_count(self) -> int:
        return len(self._queues)
