"""Pytest configuration and shared test doubles.

Puts ``backend/`` on ``sys.path`` so tests import the ``app`` package the same
way the application does, and provides in-memory stand-ins for the provider,
the task store, the materializer and the clock.
"""
from __future__ import annotations

import os
import sys
import uuid
from datetime import datetime, timedelta

import pytest

BACKEND = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from app.models import Asset, GenerationTask, Prompt, TaskStatus  # noqa: E402
from app.models.generation_task import check_terminal_transition  # noqa: E402
from app.services.asset_storage import MaterializedAsset  # noqa: E402
from app.services.errors import (  # noqa: E402
    AssetDownloadError,
    InvalidTransitionError,
    TaskNotFoundError,
)
from app.services.task_store import terminal_values  # noqa: E402

EPOCH = datetime(2026, 1, 1, 12, 0, 0)


class FakeClock:
    """Simulated time: ``sleep`` returns immediately and advances the clock."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.start = start
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.elapsed += seconds


class FakeProviderClient:
    """Scripted provider: each ``query`` pops the next response (or raises it)."""

    def __init__(self, responses=None, repeat_last: bool = False, submit_result: str = "ext-1") -> None:
        self.responses = list(responses or [])
        self.repeat_last = repeat_last
        self.submit_result = submit_result
        self.queries: list[tuple[str, str]] = []
        self.submitted: list = []
        self.closed = False

    async def submit(self, params) -> str:
        self.submitted.append(params)
        if isinstance(self.submit_result, Exception):
            raise self.submit_result
        return self.submit_result

    async def query(self, model: str, external_task_id: str) -> dict:
        self.queries.append((model, external_task_id))
        if self.repeat_last and len(self.responses) == 1:
            item = self.responses[0]
        else:
            item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeMaterializer:
    def __init__(self, fail_indices=()) -> None:
        self.fail_indices = set(fail_indices)
        self.calls: list[tuple[str, str, int, str]] = []

    async def materialize(self, source_url, task_id, index, asset_type) -> MaterializedAsset:
        self.calls.append((source_url, task_id, index, asset_type.value))
        if index in self.fail_indices:
            raise AssetDownloadError(f"Failed to download {source_url}: HTTP 404")
        sub = "images" if asset_type.value == "IMAGE" else "videos"
        ext = "png" if sub == "images" else "mp4"
        return MaterializedAsset(
            local_path=f"/tmp/{sub}/{task_id}_{index}.{ext}",
            serving_url=f"/api/assets/{sub}/{task_id}_{index}.{ext}",
            file_size=100 + index,
            mime_type="image/png" if sub == "images" else "video/mp4",
        )

    async def aclose(self) -> None:
        pass


class InMemoryTaskStore:
    """Task store double sharing the production terminal-transition guard."""

    def __init__(self) -> None:
        self.prompts: dict[str, Prompt] = {}
        self.tasks: dict[str, GenerationTask] = {}
        self.assets: list[Asset] = []
        self.terminal_writes: list[tuple[str, dict]] = []
        self.fail_with: Exception | None = None

    # -- seeding helpers --

    def add_prompt(self, prompt_id: str = "prompt-1", type: str = "IMAGE") -> Prompt:
        prompt = Prompt(id=prompt_id, type=type, content="a lighthouse at dusk", created_at=EPOCH)
        self.prompts[prompt_id] = prompt
        return prompt

    def add_task(
        self,
        task_id: str | None = None,
        *,
        prompt_id: str = "prompt-1",
        model: str = "IMAGEN4",
        external_task_id: str | None = "ext-1",
        created_at: datetime = EPOCH,
        provider_params: str = "{}",
    ) -> GenerationTask:
        task = GenerationTask(
            id=task_id or uuid.uuid4().hex,
            prompt_id=prompt_id,
            service="KIE",
            model=model,
            external_task_id=external_task_id,
            status=TaskStatus.PENDING.value,
            provider_params=provider_params,
            created_at=created_at,
        )
        self.tasks[task.id] = task
        return task

    # -- store contract --

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get_prompt(self, prompt_id):
        self._check()
        return self.prompts.get(prompt_id)

    async def create_task(self, *, prompt_id, service, model, provider_params,
                          external_task_id=None, created_at=None):
        self._check()
        task = self.add_task(
            prompt_id=prompt_id,
            model=getattr(model, "value", model),
            external_task_id=external_task_id,
            created_at=created_at or EPOCH,
            provider_params=provider_params,
        )
        task.service = getattr(service, "value", service)
        return task

    async def get_task(self, task_id):
        self._check()
        return self.tasks.get(task_id)

    async def list_tasks_for_prompt(self, prompt_id):
        self._check()
        tasks = [t for t in self.tasks.values() if t.prompt_id == prompt_id]
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    async def list_assets_for_task(self, task_id):
        self._check()
        assets = [a for a in self.assets if a.generation_task_id == task_id]
        return sorted(assets, key=lambda a: a.result_index)

    async def find_pending_tasks(self, limit):
        self._check()
        pending = [t for t in self.tasks.values() if t.status == TaskStatus.PENDING.value]
        return sorted(pending, key=lambda t: t.created_at, reverse=True)[:limit]

    async def count_by_status(self, status):
        self._check()
        status = getattr(status, "value", status)
        return sum(1 for t in self.tasks.values() if t.status == status)

    async def update_task_terminal(self, task_id, **fields):
        self._check()
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        values = terminal_values(fields)
        check_terminal_transition(task, values)
        for key, value in values.items():
            setattr(task, key, value)
        self.terminal_writes.append((task_id, values))
        return task

    async def create_asset(self, **fields):
        self._check()
        task = self.tasks.get(fields["generation_task_id"])
        if task is None:
            raise TaskNotFoundError(fields["generation_task_id"])
        if task.status != TaskStatus.SUCCESS.value:
            raise InvalidTransitionError("asset for non-SUCCESS task")
        asset = Asset(id=uuid.uuid4().hex, created_at=EPOCH, **fields)
        self.assets.append(asset)
        return asset


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryTaskStore:
    s = InMemoryTaskStore()
    s.add_prompt()
    return s


@pytest.fixture
def materializer() -> FakeMaterializer:
    return FakeMaterializer()
