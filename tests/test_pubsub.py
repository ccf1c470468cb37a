"""Tests for app/services/pubsub.py (Redis replaced by a recording fake)."""
from __future__ import annotations

import asyncio
import json

from app.services import pubsub


class FakeRedis:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, message))


def test_publish_task_update(store, monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(pubsub, "_get_async_client", lambda: fake)
    task = store.add_task("t1")
    task.status = "FAILED"
    task.fail_code = "TIMEOUT"

    asyncio.run(pubsub.publish_task_update(task))

    channel, message = fake.published[0]
    assert channel == "promptstudio:tasks:prompt-1"
    assert json.loads(message) == {
        "type": "generation_task_update",
        "task_id": "t1",
        "prompt_id": "prompt-1",
        "status": "FAILED",
        "fail_code": "TIMEOUT",
    }


def test_publish_failure_is_swallowed(store, monkeypatch, caplog):
    monkeypatch.setattr(pubsub, "_get_async_client", lambda: FakeRedis(fail=True))

    asyncio.run(pubsub.publish_task_update(store.add_task("t2")))

    assert "Failed to publish task update for t2" in caplog.text
