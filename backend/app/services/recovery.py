"""Startup recovery for generation tasks interrupted by a restart.

Poll loops live in process memory, so a restart orphans every PENDING task.
The sweep runs once before the app serves requests: stale tasks are closed
as FAILED/TIMEOUT, recent ones get a fresh poller.
"""

from __future__ import annotations

import logging

from app.models.generation_task import TaskStatus
from app.services.clock import Clock
from app.services.errors import TaskAlreadyTerminalError

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 300.0
DEFAULT_RESUME_LIMIT = 50


class RecoverySweep:
    """Times out stale PENDING tasks and hands recent ones to the supervisor."""

    def __init__(
        self,
        store,
        supervisor,
        clock: Clock | None = None,
        max_age: float = DEFAULT_MAX_AGE_SECONDS,
        limit: int = DEFAULT_RESUME_LIMIT,
    ) -> None:
        self.store = store
        self.supervisor = supervisor
        self.clock = clock or Clock()
        self.max_age = max_age
        self.limit = limit

    @property
    def timeout_message(self) -> str:
        return f"Task timed out after server restart (exceeded {self.max_age / 60:g} minutes)"

    async def resume_pending_tasks(self) -> int:
        """Resume or time out PENDING tasks; returns how many pollers were attached.

        Never raises: a store failure is logged and reported as zero resumed.
        """
        try:
            tasks = await self.store.find_pending_tasks(self.limit)
            if not tasks:
                logger.info("No pending generation tasks to resume")
                return 0

            now = self.clock.now()
            resumed = 0
            timed_out = 0

            for task in tasks:
                age = (now - task.created_at).total_seconds()

                if age > self.max_age:
                    try:
                        await self.store.update_task_terminal(
                            task.id,
                            status=TaskStatus.FAILED,
                            fail_code="TIMEOUT",
                            fail_message=self.timeout_message,
                            completed_at=now,
                        )
                    except TaskAlreadyTerminalError:
                        logger.info("Task %s finished before it could be timed out", task.id)
                        continue
                    timed_out += 1
                    logger.warning("Task %s timed out after restart (age %.0fs)", task.id, age)
                    continue

                if not task.external_task_id:
                    logger.warning("Task %s has no external task id, leaving it PENDING", task.id)
                    continue

                self.supervisor.spawn(task)
                resumed += 1

            logger.info("Recovery sweep: %d resumed, %d timed out", resumed, timed_out)
            return resumed
        except Exception:
            logger.exception("Recovery sweep failed")
            return 0

    async def count_pending(self) -> int:
        try:
            return await self.store.count_by_status(TaskStatus.PENDING)
        except Exception:
            logger.exception("Failed to count pending generation tasks")
            return 0
