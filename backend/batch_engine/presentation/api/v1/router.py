"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from batch_engine.presentation.api.v1.endpoints.health import router as health_router
from batch_engine.presentation.api.v1.batch_controller import router as batch_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(batch_router)
