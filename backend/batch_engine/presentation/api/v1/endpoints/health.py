"""Health check endpoint — always available, never touches the job store."""

from fastapi import APIRouter, Depends

from batch_engine.application.services.batch_job_controller import BatchJobController
from batch_engine.config import get_settings
from batch_engine.infrastructure.dependencies import get_batch_controller

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    controller: BatchJobController = Depends(get_batch_controller),
) -> dict:
    """Returns the application health status and whether a batch is running."""
    settings = get_settings()
    job = controller.get_job()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "job_store": settings.job_store_backend,
        "batch_running": controller.is_running,
        "job_status": job.status.value if job else None,
    }
