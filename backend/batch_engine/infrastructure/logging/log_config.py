"""Logging setup for the batch engine.

Two things happen at startup:

* per-category levels from Settings (``log_level_sql``, ``log_level_batch``,
  ...) so SQL and HTTP chatter can be silenced without touching the run log;
* every record gets a ``job_id`` attribute naming the batch run that emitted
  it (``-`` outside a run), so run output can be told apart from API traffic.

Usage:
    from batch_engine.infrastructure.logging.log_config import setup_logging
    setup_logging()   # once, in the FastAPI lifespan
"""

import asyncio
import logging
import sys

from batch_engine.application.services.batch_job_controller import RUN_TASK_PREFIX
from batch_engine.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(job_id)s] %(message)s"
NO_JOB = "-"

_CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_batch": (
        "batch_engine.application.services",
        "batch_engine.infrastructure.storage",
        "batch_engine.infrastructure.database",
    ),
    "log_level_openrouter": (
        "batch_engine.infrastructure.openrouter",
        "batch_engine.infrastructure.llm",
    ),
}


def current_job_id() -> str:
    """Id of the job whose run task is executing, or NO_JOB."""
    try:
        task = asyncio.current_task()
    except RuntimeError:  # no running loop (threads, sync startup code)
        return NO_JOB
    if task is None:
        return NO_JOB
    name = task.get_name()
    if not name.startswith(RUN_TASK_PREFIX):
        return NO_JOB
    return name[len(RUN_TASK_PREFIX):]


class JobContextFilter(logging.Filter):
    """Stamps ``record.job_id`` unless the caller passed one via ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "job_id"):
            record.job_id = current_job_id()
        return True


def setup_logging(settings: Settings | None = None) -> None:
    """Apply levels from settings and attach the job context to root handlers.

    Safe to call more than once; handlers and filters are not duplicated.
    """
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))

    # uvicorn usually installs a handler; tests and scripts may not
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for handler in root.handlers:
        if not any(isinstance(f, JobContextFilter) for f in handler.filters):
            handler.addFilter(JobContextFilter())

    for settings_field, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, settings_field, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured (root=%s, batch=%s)", settings.log_level, settings.log_level_batch
    )


def _parse_level(raw: str) -> int:
    numeric = getattr(logging, str(raw).upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO
