"""System status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.generation import get_runtime
from app.config import get_settings
from app.services.generation_service import GenerationRuntime
from app.services.providers.kie_models import KIE_MODELS

router = APIRouter()


@router.get("/health")
async def health(runtime: GenerationRuntime = Depends(get_runtime)):
    """Liveness plus generation backlog: stored PENDING tasks and live pollers."""
    settings = get_settings()
    return {
        "service": settings.APP_NAME,
        "status": "healthy",
        "pending_tasks": await runtime.sweep.count_pending(),
        "active_pollers": runtime.supervisor.active_count,
        "models": KIE_MODELS.list_models(),
    }
