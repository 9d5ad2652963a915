"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from batch_engine.config import Settings, get_settings
from batch_engine.infrastructure.database import Base, engine
from batch_engine.infrastructure.dependencies import get_batch_controller, get_event_notifier
from batch_engine.infrastructure.logging.log_config import setup_logging
from batch_engine.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


async def _ensure_database_exists(settings: Settings) -> None:
    """Create the PostgreSQL database if it does not yet exist.

    Connects to the default ``postgres`` maintenance database, checks for the
    target database name, and issues ``CREATE DATABASE`` when missing.
    """
    import asyncpg

    parsed = urlparse(settings.database_url)
    db_name = parsed.path.lstrip("/")
    if not db_name:
        return

    maintenance_url = settings.database_url.rsplit("/", 1)[0] + "/postgres"

    try:
        conn = await asyncpg.connect(maintenance_url)
        try:
            exists = await conn.fetchval(
                "SELECT 1 FROM pg_database WHERE datname = $1", db_name
            )
            if not exists:
                # CREATE DATABASE cannot run inside a transaction block
                await conn.execute(f'CREATE DATABASE "{db_name}"')
                logger.info("Created database '%s'", db_name)
            else:
                logger.debug("Database '%s' already exists", db_name)
        finally:
            await conn.close()
    except (OSError, asyncpg.PostgresError) as exc:
        logger.warning("Could not auto-create database '%s': %s", db_name, exc)


def _ensure_data_dirs(settings: Settings) -> None:
    """Create parent directories for the SQLite file and the JSON job store."""
    if settings.database_url.startswith("sqlite:///"):
        db_path = settings.database_url.removeprefix("sqlite:///")
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    if settings.job_store_backend == "file":
        Path(settings.job_store_path).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — prepare storage, restore the job, drain on shutdown."""
    settings = get_settings()
    setup_logging(settings)

    # 1. Storage: data directories, database, tables
    _ensure_data_dirs(settings)
    if settings.job_store_backend == "database":
        if settings.database_url.startswith("postgresql://"):
            await _ensure_database_exists(settings)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    if not settings.openrouter_api_key.strip():
        logger.warning("OPENROUTER_API_KEY is not configured; every generation will fail.")

    # 2. Restore the persisted job (never resumes it automatically)
    controller = get_batch_controller()
    job = await controller.restore()
    if job is not None:
        logger.info("Active job %s restored with status '%s'", job.id, job.status.value)

    yield

    # Shutdown: let the in-flight item finish and persist, then close SSE streams
    await controller.shutdown()
    await get_event_notifier().shutdown()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "batch_engine.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
