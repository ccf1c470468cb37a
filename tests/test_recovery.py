"""Tests for app/services/recovery.py"""
from __future__ import annotations

import asyncio
from datetime import timedelta

from app.services.recovery import RecoverySweep


class RecordingSupervisor:
    def __init__(self) -> None:
        self.spawned = []

    def spawn(self, task):
        self.spawned.append(task)


def _minutes_ago(clock, minutes: float):
    return clock.now() - timedelta(minutes=minutes)


def test_resumes_recent_tasks_and_times_out_stale_ones(store, clock):
    fresh = store.add_task("fresh", created_at=_minutes_ago(clock, 1), external_task_id="e1")
    recent = store.add_task("recent", created_at=_minutes_ago(clock, 2), external_task_id="e2")
    stale = store.add_task("stale", created_at=_minutes_ago(clock, 6), external_task_id="e3")
    supervisor = RecordingSupervisor()

    resumed = asyncio.run(RecoverySweep(store, supervisor, clock).resume_pending_tasks())

    assert resumed == 2
    assert [t.id for t in supervisor.spawned] == [fresh.id, recent.id]
    assert stale.status == "FAILED"
    assert stale.fail_code == "TIMEOUT"
    assert stale.fail_message == "Task timed out after server restart (exceeded 5 minutes)"
    assert stale.completed_at == clock.now()
    assert fresh.status == recent.status == "PENDING"


def test_task_without_external_id_is_left_alone(store, clock):
    store.add_task("ok", created_at=_minutes_ago(clock, 1), external_task_id="e1")
    orphan = store.add_task("orphan", created_at=_minutes_ago(clock, 1), external_task_id=None)
    supervisor = RecordingSupervisor()

    resumed = asyncio.run(RecoverySweep(store, supervisor, clock).resume_pending_tasks())

    assert resumed == 1
    assert orphan not in supervisor.spawned
    assert orphan.status == "PENDING"
    assert store.terminal_writes == []


def test_only_most_recent_tasks_up_to_limit_are_considered(store, clock):
    for i in range(5):
        store.add_task(f"t{i}", created_at=_minutes_ago(clock, i * 0.1), external_task_id=f"e{i}")
    supervisor = RecordingSupervisor()

    resumed = asyncio.run(RecoverySweep(store, supervisor, clock, limit=3).resume_pending_tasks())

    assert resumed == 3
    assert [t.id for t in supervisor.spawned] == ["t0", "t1", "t2"]


def test_no_pending_tasks_returns_zero(store, clock):
    assert asyncio.run(RecoverySweep(store, RecordingSupervisor(), clock).resume_pending_tasks()) == 0


def test_store_error_is_contained(store, clock):
    store.add_task(created_at=_minutes_ago(clock, 1))
    store.fail_with = ConnectionError("database unavailable")
    sweep = RecoverySweep(store, RecordingSupervisor(), clock)

    assert asyncio.run(sweep.resume_pending_tasks()) == 0
    assert asyncio.run(sweep.count_pending()) == 0


def test_count_pending(store, clock):
    store.add_task("a")
    store.add_task("b")
    done = store.add_task("c")
    done.status = "SUCCESS"

    assert asyncio.run(RecoverySweep(store, RecordingSupervisor(), clock).count_pending()) == 2


def test_resumed_task_is_polled_to_completion(store, materializer, clock):
    import json

    from conftest import FakeProviderClient
    from app.services.task_poller import PollerSupervisor, TaskPoller

    task = store.add_task(created_at=_minutes_ago(clock, 3), external_task_id="e1")
    client = FakeProviderClient([
        {"state": "waiting"},
        {"state": "success", "resultJson": json.dumps({"resultUrls": ["https://cdn.example/x.png"]})},
    ])
    supervisor = PollerSupervisor(TaskPoller(client, store, materializer, clock=clock))

    async def scenario():
        resumed = await RecoverySweep(store, supervisor, clock).resume_pending_tasks()
        await supervisor.wait()
        return resumed

    assert asyncio.run(scenario()) == 1
    assert task.status == "SUCCESS"
    assert len(store.assets) == 1
    # polling restarts from the first attempt
    assert clock.sleeps == [2.0]
