"""Task poller — drives one submitted generation task to a terminal state.

Each poll loop is an independent asyncio task owned by a PollerSupervisor.
The loop queries the provider on an escalating schedule, normalizes every
response and performs exactly one terminal store write:

    query → normalize → PENDING:  sleep, query again
                      → FAILED:   write FAILED
                      → SUCCESS:  materialize assets, write SUCCESS, record assets
    deadline passed   →           write FAILED/TIMEOUT, raise PollingTimeout
    fatal error       →           write FAILED/<fail_code>, re-raise
    unexpected error  →           write FAILED/INTERNAL_ERROR, re-raise
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from app.models.generation_task import GenerationTask, TaskStatus
from app.services.asset_storage import AssetMaterializer, MaterializedAsset
from app.services.clock import Clock
from app.services.errors import AssetDownloadError, GenerationError, PollingTimeout
from app.services.providers.kie_models import KIE_MODELS, KieModelRegistry
from app.services.status_normalizer import NormalizedResult, normalize

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 300.0
INTERNAL_ERROR = "INTERNAL_ERROR"

Notifier = Callable[[GenerationTask], Awaitable[None]]


def polling_interval(attempts_made: int) -> float:
    """Seconds to wait before the next query, given how many were already made."""
    if attempts_made < 3:
        return 2.0
    if attempts_made < 20:
        return 5.0
    return 10.0


def _minutes(seconds: float) -> str:
    return f"{seconds / 60:g}"


class TaskPoller:
    """Polls the provider for one task at a time; see the module docstring."""

    def __init__(
        self,
        client,
        store,
        materializer: AssetMaterializer,
        clock: Clock | None = None,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        notifier: Optional[Notifier] = None,
        registry: KieModelRegistry = KIE_MODELS,
    ) -> None:
        self.client = client
        self.store = store
        self.materializer = materializer
        self.clock = clock or Clock()
        self.timeout = timeout
        self.notifier = notifier
        self.registry = registry

    async def run(self, task: GenerationTask) -> GenerationTask:
        """Poll ``task`` until it is terminal and return the stored record."""
        if not task.external_task_id:
            raise ValueError(f"Task {task.id} has no external task id and cannot be polled")

        logger.info("Polling task %s (model=%s, external=%s)",
                    task.id, task.model, task.external_task_id)

        try:
            result = await self._poll_until_terminal(task)
        except GenerationError as e:
            logger.warning("Task %s failed while polling: [%s] %s", task.id, e.fail_code, e)
            await self._write_failed(task, e.fail_code, str(e))
            raise
        except Exception as e:
            # CancelledError is not an Exception: cancelled loops stay PENDING for recovery
            logger.exception("Unexpected error while polling task %s", task.id)
            await self._write_failed(task, INTERNAL_ERROR, f"{type(e).__name__}: {e}")
            raise

        if result.status == TaskStatus.FAILED:
            logger.info("Task %s failed at provider: [%s] %s",
                        task.id, result.fail_code, result.fail_message)
            return await self._write_failed(task, result.fail_code, result.fail_message)

        return await self._complete(task, result)

    # ──────── Poll loop ────────

    async def _poll_until_terminal(self, task: GenerationTask) -> NormalizedResult:
        started = self.clock.monotonic()
        attempts = 0

        while True:
            if attempts > 0:
                await self.clock.sleep(polling_interval(attempts))

            if self.clock.monotonic() - started >= self.timeout:
                raise PollingTimeout(f"Polling timeout after {_minutes(self.timeout)} minutes")

            raw = await self.client.query(task.model, task.external_task_id)
            attempts += 1

            result = normalize(task.model, raw)
            if result.status != TaskStatus.PENDING:
                return result

            logger.debug("Task %s still pending after %d queries", task.id, attempts)

    # ──────── Terminal writes ────────

    async def _write_failed(
        self, task: GenerationTask, fail_code: str | None, fail_message: str | None
    ) -> GenerationTask:
        updated = await self.store.update_task_terminal(
            task.id,
            status=TaskStatus.FAILED,
            fail_code=fail_code,
            fail_message=fail_message,
            completed_at=self.clock.now(),
        )
        await self._notify(updated)
        return updated

    async def _complete(self, task: GenerationTask, result: NormalizedResult) -> GenerationTask:
        asset_type = self.registry.asset_type_for(task.model, task.provider_params)
        provider = self.registry.get(task.model).provider

        saved: list[tuple[int, MaterializedAsset]] = []
        for index, url in enumerate(result.result_urls):
            try:
                saved.append((index, await self.materializer.materialize(url, task.id, index, asset_type)))
            except (AssetDownloadError, OSError) as e:
                logger.warning("Skipping asset %d of task %s: %s", index, task.id, e)

        updated = await self.store.update_task_terminal(
            task.id,
            status=TaskStatus.SUCCESS,
            result_payload=result.result_payload,
            completed_at=self.clock.now(),
        )

        recorded = 0
        for index, asset in saved:
            try:
                await self.store.create_asset(
                    prompt_id=task.prompt_id,
                    generation_task_id=task.id,
                    type=asset_type.value,
                    url=asset.serving_url,
                    provider=provider,
                    file_size=asset.file_size,
                    mime_type=asset.mime_type,
                    result_index=index,
                )
                recorded += 1
            except Exception:
                logger.warning("Failed to record asset %d of task %s", index, task.id, exc_info=True)

        logger.info("Task %s succeeded with %d/%d assets",
                    task.id, recorded, len(result.result_urls))
        await self._notify(updated)
        return updated

    async def _notify(self, task: GenerationTask) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier(task)
        except Exception:
            logger.warning("Task update notification failed for %s", task.id, exc_info=True)


class PollerSupervisor:
    """Owns the asyncio tasks running poll loops.

    Nothing is fire-and-forget: every spawned loop is tracked until it ends,
    its exception (if any) is retrieved and logged, and shutdown cancels
    whatever is still running. Cancelled tasks stay PENDING in the store and
    are picked up by the next recovery sweep.
    """

    def __init__(self, poller: TaskPoller) -> None:
        self.poller = poller
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, task: GenerationTask) -> asyncio.Task:
        handle = asyncio.create_task(self.poller.run(task), name=f"poll-{task.id}")
        self._tasks.add(handle)
        handle.add_done_callback(self._on_done)
        return handle

    def _on_done(self, handle: asyncio.Task) -> None:
        self._tasks.discard(handle)
        if handle.cancelled():
            logger.info("Poller %s cancelled", handle.get_name())
            return
        exc = handle.exception()
        if exc is not None:
            logger.error("Poller %s ended with error: %s", handle.get_name(), exc,
                         exc_info=(type(exc), exc, exc.__traceback__))

    async def wait(self) -> None:
        """Wait until every poller spawned so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        pending = list(self._tasks)
        if not pending:
            return
        logger.info("Cancelling %d active pollers", len(pending))
        for handle in pending:
            handle.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
