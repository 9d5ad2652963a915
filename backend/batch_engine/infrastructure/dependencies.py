"""FastAPI dependency injection — wires infrastructure to application layer.

The batch controller and event notifier are process-wide singletons: the
active job, its run task and the SSE subscribers must outlive any request.
"""

from functools import lru_cache

from batch_engine.application.interfaces import KeyValueStore
from batch_engine.application.services import (
    BatchJobController,
    EventNotifier,
    ItemExecutor,
    JobStore,
)
from batch_engine.config import Settings, get_settings
from batch_engine.domain.entities import GenerationSettings
from batch_engine.infrastructure.database.repositories import SQLAlchemyKeyValueStore
from batch_engine.infrastructure.database.session import async_session_factory
from batch_engine.infrastructure.llm import OpenRouterContentGenerator
from batch_engine.infrastructure.openrouter import OpenRouterClient
from batch_engine.infrastructure.storage.json_file_key_value_store import JsonFileKeyValueStore


def build_key_value_store(settings: Settings) -> KeyValueStore:
    """Select the job store backend configured in settings."""
    if settings.job_store_backend == "file":
        return JsonFileKeyValueStore(settings.job_store_path)
    return SQLAlchemyKeyValueStore(async_session_factory)


def default_generation_settings(settings: Settings) -> GenerationSettings:
    return GenerationSettings(
        provider=settings.default_provider,
        model=settings.default_model,
        style=settings.default_style,
        length=settings.default_length,
        temperature=settings.default_temperature,
    )


@lru_cache
def get_event_notifier() -> EventNotifier:
    """Provides the process-wide EventNotifier."""
    return EventNotifier()


@lru_cache
def get_batch_controller() -> BatchJobController:
    """Provides the process-wide BatchJobController with OpenRouter as the generator."""
    settings = get_settings()
    chat_provider = OpenRouterClient(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        app_name=settings.openrouter_app_name,
        timeout=settings.openrouter_timeout_seconds,
    )
    return BatchJobController(
        job_store=JobStore(build_key_value_store(settings), key=settings.job_store_key),
        executor=ItemExecutor(OpenRouterContentGenerator(chat_provider)),
        notifier=get_event_notifier(),
        max_items=settings.batch_max_items,
        item_delay_seconds=settings.batch_item_delay_seconds,
        default_settings=default_generation_settings(settings),
    )
