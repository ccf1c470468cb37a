"""Generation task actions: submit, query and list.

``GenerationRuntime`` bundles the long-lived collaborators (provider client,
store, materializer, poller supervisor, recovery sweep) that the application
lifespan builds once and the API routes use through ``app.state``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.models.generation_task import GenerationTask
from app.schemas.generation import GenerationTaskRead, parse_provider_params
from app.services.asset_storage import AssetMaterializer
from app.services.clock import Clock
from app.services.errors import PromptNotFoundError
from app.services.recovery import RecoverySweep
from app.services.task_poller import PollerSupervisor, TaskPoller

logger = logging.getLogger(__name__)


@dataclass
class GenerationRuntime:
    client: Any
    store: Any
    materializer: Optional[AssetMaterializer]
    supervisor: PollerSupervisor
    sweep: RecoverySweep

    async def aclose(self) -> None:
        """Cancel running pollers and release HTTP clients."""
        await self.supervisor.shutdown()
        if self.client is not None:
            await self.client.aclose()
        if self.materializer is not None:
            await self.materializer.aclose()


def build_runtime(
    settings,
    store,
    client,
    materializer: AssetMaterializer,
    clock: Clock | None = None,
    notifier=None,
) -> GenerationRuntime:
    """Wire poller, supervisor and recovery sweep around the given collaborators."""
    clock = clock or Clock()
    poller = TaskPoller(
        client,
        store,
        materializer,
        clock=clock,
        timeout=settings.POLL_TIMEOUT_SECONDS,
        notifier=notifier,
    )
    supervisor = PollerSupervisor(poller)
    sweep = RecoverySweep(
        store,
        supervisor,
        clock=clock,
        max_age=settings.RESUME_MAX_TASK_AGE_SECONDS,
        limit=settings.RESUME_MAX_TASKS,
    )
    return GenerationRuntime(
        client=client,
        store=store,
        materializer=materializer,
        supervisor=supervisor,
        sweep=sweep,
    )


async def create_generation_task(
    store,
    client,
    supervisor: PollerSupervisor,
    prompt_id: str,
    provider_params,
) -> GenerationTask:
    """Submit a generation request and start tracking it.

    1. Validate the prompt id and provider params
    2. Check that the prompt exists
    3. Submit to the provider (errors propagate; nothing is stored)
    4. Store the task as PENDING with the provider's task id
    5. Attach a poller and return immediately

    Raises ValueError for a blank prompt id, pydantic.ValidationError for bad
    params, PromptNotFoundError and ProviderError.
    """
    if not prompt_id or not prompt_id.strip():
        raise ValueError("Prompt ID is required")

    if isinstance(provider_params, dict):
        provider_params = parse_provider_params(provider_params)

    prompt = await store.get_prompt(prompt_id)
    if prompt is None:
        raise PromptNotFoundError(f"Prompt not found: {prompt_id}")

    external_task_id = await client.submit(provider_params)

    task = await store.create_task(
        prompt_id=prompt_id,
        service=provider_params.service,
        model=provider_params.model,
        provider_params=provider_params.to_stored_json(),
        external_task_id=external_task_id,
    )
    supervisor.spawn(task)
    logger.info("Generation task %s submitted for prompt %s", task.id, prompt_id)
    return task


async def get_generation_task(store, task_id: str) -> Optional[GenerationTaskRead]:
    task = await store.get_task(task_id)
    if task is None:
        return None
    assets = await store.list_assets_for_task(task.id)
    return GenerationTaskRead.from_task(task, assets)


async def list_generation_tasks(store, prompt_id: str) -> list[GenerationTaskRead]:
    """Tasks of a prompt, newest first, with their assets."""
    if not prompt_id:
        raise ValueError("Missing required parameter: prompt_id")
    tasks = await store.list_tasks_for_prompt(prompt_id)
    return [
        GenerationTaskRead.from_task(task, await store.list_assets_for_task(task.id))
        for task in tasks
    ]
