from __future__ import annotations
"""PromptStudio backend — FastAPI application entry point.

Mounts the API routes, configures CORS, serves materialized assets and
resumes interrupted generation tasks on startup.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.router import api_router
from app.api.ws import router as ws_router
from app.config import Settings, get_settings
from app.database import close_db, get_session_factory
from app.services.asset_storage import AssetMaterializer
from app.services.generation_service import GenerationRuntime, build_runtime
from app.services.providers.kie_client import KieClient
from app.services.pubsub import close_pubsub_client, publish_task_update
from app.services.task_store import SqlTaskStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _build_default_runtime(settings: Settings) -> GenerationRuntime:
    """Production wiring: Kie.ai client, SQL store, local asset storage."""
    return build_runtime(
        settings,
        store=SqlTaskStore(get_session_factory()),
        client=KieClient.from_settings(settings),
        materializer=AssetMaterializer.from_settings(settings),
        notifier=publish_task_update if settings.PUBLISH_TASK_UPDATES else None,
    )


def create_app(
    runtime: GenerationRuntime | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the application; tests pass a prebuilt ``runtime``."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire services, resume pending tasks, and tear everything down on exit."""
        logger.info("%s starting up...", settings.APP_NAME)
        owns_runtime = runtime is None
        app.state.generation = runtime or _build_default_runtime(settings)

        # Runs before serving: orphaned PENDING tasks are resumed or timed out
        resumed = await app.state.generation.sweep.resume_pending_tasks()
        logger.info("Startup recovery resumed %d generation task(s)", resumed)

        yield

        await app.state.generation.supervisor.shutdown()
        if owns_runtime:
            await app.state.generation.aclose()
            await close_pubsub_client()
            await close_db()
        logger.info("%s shut down", settings.APP_NAME)

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Prompt-driven image and video generation with tracked provider tasks",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(ws_router)

    # Materialized assets: /api/assets/{images|videos}/{task_id}_{index}.{ext}
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)
    app.mount(
        settings.ASSET_URL_PREFIX,
        StaticFiles(directory=settings.STORAGE_DIR),
        name="assets",
    )

    @app.get("/")
    async def root():
        return {"service": settings.APP_NAME, "status": "running"}

    return app


app = create_app()
