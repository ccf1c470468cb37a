from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter

from app.api.generation import router as generation_router
from app.api.system import router as system_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generation_router, prefix="/generation", tags=["Generation"])
api_router.include_router(system_router, prefix="/system", tags=["System"])
