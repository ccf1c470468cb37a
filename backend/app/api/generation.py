"""Generation task API endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import ValidationError

from app.schemas.generation import CreateGenerationTaskRequest, GenerationTaskRead
from app.services.errors import PromptNotFoundError, ProviderError
from app.services.generation_service import (
    GenerationRuntime,
    create_generation_task,
    get_generation_task,
    list_generation_tasks,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_runtime(request: Request) -> GenerationRuntime:
    return request.app.state.generation


def _validation_detail(e: ValidationError) -> str:
    messages = ", ".join(err["msg"] for err in e.errors())
    return f"Invalid provider parameters: {messages}"


@router.post("/tasks", response_model=GenerationTaskRead, status_code=201)
async def create_task(
    payload: dict[str, Any] = Body(...),
    runtime: GenerationRuntime = Depends(get_runtime),
):
    """Submit a generation request; polling continues in the background."""
    try:
        data = CreateGenerationTaskRequest.model_validate(payload)
        task = await create_generation_task(
            runtime.store,
            runtime.client,
            runtime.supervisor,
            data.prompt_id,
            data.provider_params,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))
    except PromptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        logger.warning("Provider rejected generation request: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return GenerationTaskRead.from_task(task, [])


@router.get("/tasks", response_model=list[GenerationTaskRead])
async def list_tasks(
    prompt_id: str | None = Query(default=None),
    runtime: GenerationRuntime = Depends(get_runtime),
):
    """List a prompt's generation tasks (newest first) with their assets."""
    if not prompt_id:
        raise HTTPException(status_code=400, detail="Missing required parameter: prompt_id")
    return await list_generation_tasks(runtime.store, prompt_id)


@router.get("/tasks/{task_id}", response_model=GenerationTaskRead)
async def get_task(task_id: str, runtime: GenerationRuntime = Depends(get_runtime)):
    task = await get_generation_task(runtime.store, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Generation task not found")
    return task
