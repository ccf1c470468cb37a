"""SQLAlchemy-backed task store.

The durability boundary of the lifecycle engine: pollers write terminal
records here, the recovery sweep reads PENDING tasks back after a restart.
Each operation runs in its own short session so concurrent pollers never
share a transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.asset import Asset, AssetType
from app.models.generation_task import GenerationTask, TaskStatus, check_terminal_transition
from app.models.prompt import Prompt
from app.services.errors import (
    InvalidTransitionError,
    TaskAlreadyTerminalError,
    TaskNotFoundError,
)

logger = logging.getLogger(__name__)

TERMINAL_FIELDS = frozenset({"status", "result_payload", "fail_code", "fail_message", "completed_at"})


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def terminal_values(fields: dict[str, Any]) -> dict[str, Any]:
    """Normalize the keyword fields of a terminal write."""
    unknown = set(fields) - TERMINAL_FIELDS
    if unknown:
        raise InvalidTransitionError(f"Unexpected terminal fields: {sorted(unknown)}")
    values = dict(fields)
    values["status"] = _enum_value(values.get("status"))
    return values


class SqlTaskStore:
    """Task store over an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    # ──────── Prompts (read-only) ────────

    async def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
        async with self.session_factory() as session:
            return await session.get(Prompt, prompt_id)

    # ──────── Generation tasks ────────

    async def create_task(
        self,
        *,
        prompt_id: str,
        service: str,
        model: str,
        provider_params: str,
        external_task_id: str | None = None,
        created_at=None,
    ) -> GenerationTask:
        """Insert a new PENDING task."""
        task = GenerationTask(
            prompt_id=prompt_id,
            service=_enum_value(service),
            model=_enum_value(model),
            external_task_id=external_task_id,
            status=TaskStatus.PENDING.value,
            provider_params=provider_params,
        )
        if created_at is not None:
            task.created_at = created_at

        async with self.session_factory() as session:
            session.add(task)
            await session.commit()
            await session.refresh(task)

        logger.info("Generation task %s created (model=%s, external=%s)",
                    task.id, task.model, external_task_id)
        return task

    async def get_task(self, task_id: str) -> Optional[GenerationTask]:
        async with self.session_factory() as session:
            return await session.get(GenerationTask, task_id)

    async def list_tasks_for_prompt(self, prompt_id: str) -> list[GenerationTask]:
        """Tasks of one prompt, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(GenerationTask)
                .where(GenerationTask.prompt_id == prompt_id)
                .order_by(GenerationTask.created_at.desc())
            )
            return list(result.scalars().all())

    async def find_pending_tasks(self, limit: int) -> list[GenerationTask]:
        """Most recently created PENDING tasks, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(GenerationTask)
                .where(GenerationTask.status == TaskStatus.PENDING.value)
                .order_by(GenerationTask.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def count_by_status(self, status: TaskStatus | str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(GenerationTask)
                .where(GenerationTask.status == _enum_value(status))
            )
            return int(result.scalar_one())

    async def update_task_terminal(self, task_id: str, **fields: Any) -> GenerationTask:
        """Move a PENDING task to SUCCESS or FAILED, exactly once.

        The UPDATE is conditioned on ``status = PENDING`` so two writers racing
        on the same task cannot both succeed; the loser gets
        TaskAlreadyTerminalError and the stored record is left untouched.
        """
        values = terminal_values(fields)

        async with self.session_factory() as session:
            task = await session.get(GenerationTask, task_id)
            if task is None:
                raise TaskNotFoundError(f"Generation task {task_id} not found")

            check_terminal_transition(task, values)

            result = await session.execute(
                update(GenerationTask)
                .where(
                    GenerationTask.id == task_id,
                    GenerationTask.status == TaskStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise TaskAlreadyTerminalError(
                    f"Task {task_id} left PENDING concurrently; terminal write rejected"
                )
            await session.commit()
            await session.refresh(task)

        logger.info("Generation task %s → %s", task_id, task.status)
        return task

    # ──────── Assets ────────

    async def create_asset(self, **fields: Any) -> Asset:
        """Record one materialized result file of a SUCCESS task."""
        task_id = fields.get("generation_task_id")
        async with self.session_factory() as session:
            task = await session.get(GenerationTask, task_id)
            if task is None:
                raise TaskNotFoundError(f"Generation task {task_id} not found")
            if task.status != TaskStatus.SUCCESS.value:
                raise InvalidTransitionError(
                    f"Assets can only be recorded for SUCCESS tasks ({task_id} is {task.status})"
                )

            asset = Asset(**fields)
            asset.type = AssetType(_enum_value(asset.type)).value
            session.add(asset)
            await session.commit()
            await session.refresh(asset)
        return asset

    async def list_assets_for_task(self, task_id: str) -> list[Asset]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Asset)
                .where(Asset.generation_task_id == task_id)
                .order_by(Asset.result_index)
            )
            return list(result.scalars().all())
