"""Item Executor — runs one batch item against the generation capability."""

import logging
import time
from collections.abc import Awaitable, Callable

from batch_engine.application.interfaces.content_generator import ContentGenerator
from batch_engine.domain.entities import (
    BatchItem,
    BatchJob,
    GenerationRequest,
    GenerationSettings,
    ItemOutput,
)

logger = logging.getLogger(__name__)

StartHook = Callable[[], Awaitable[None]]


class ItemExecutor:
    """Executes a single item and records the outcome on the item and its job.

    Generation failures of any kind are converted into the item's ``failed``
    state, so one bad item can never abort the batch. Exceptions raised by
    the start hook (e.g. a failed snapshot write) are not generation failures
    and propagate to the caller.
    """

    def __init__(self, generator: ContentGenerator) -> None:
        self._generator = generator

    async def execute(
        self,
        job: BatchJob,
        item: BatchItem,
        settings: GenerationSettings,
        on_start: StartHook | None = None,
    ) -> bool:
        """Run item to completion or failure. Returns True when it completed."""
        item.mark_processing()
        job.refresh_progress()
        if on_start is not None:
            await on_start()

        request = GenerationRequest(
            topic=item.input.topic,
            keywords=list(item.input.keywords),
            additional_info=item.input.additional_info,
            style=settings.style,
            length=settings.length,
            provider=settings.provider,
            model=settings.model,
            temperature=settings.temperature,
        )

        start = time.monotonic()
        try:
            result = await self._generator.generate(request)
        except Exception as exc:
            item.mark_failed(str(exc) or type(exc).__name__)
            job.refresh_progress()
            logger.warning(
                "Item %s (#%d %r) failed after %.1fs: %s",
                item.id,
                item.order,
                item.input.topic,
                time.monotonic() - start,
                item.error,
            )
            return False

        item.mark_completed(
            ItemOutput(title=result.title, body=result.body, char_count=result.char_count),
            result.usage,
        )
        job.cost.actual += result.cost or 0.0
        job.refresh_progress()
        logger.info(
            "Item %s (#%d %r) completed in %.1fs (%d tokens, $%.6f)",
            item.id,
            item.order,
            item.input.topic,
            time.monotonic() - start,
            result.usage.total_tokens,
            result.cost or 0.0,
        )
        return True
