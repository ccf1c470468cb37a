"""Redis Pub/Sub bridge for generation task notifications.

Pollers publish a message on every terminal transition; the WebSocket
handler subscribes per prompt and relays messages to connected clients.
Publishing is best-effort: a Redis outage never affects task state.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from app.config import get_settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "promptstudio:tasks:"

_async_client: aioredis.Redis | None = None


def _get_async_client() -> aioredis.Redis:
    """Lazy-init a module-level async Redis client (singleton)."""
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = aioredis.from_url(settings.REDIS_URL)
    return _async_client


def channel_for(prompt_id: str) -> str:
    return f"{CHANNEL_PREFIX}{prompt_id}"


def task_update_message(task) -> dict[str, Any]:
    return {
        "type": "generation_task_update",
        "task_id": task.id,
        "prompt_id": task.prompt_id,
        "status": task.status,
        "fail_code": task.fail_code,
    }


# ──────── Publisher (used by pollers) ────────

async def publish_task_update(task) -> None:
    """Publish a task's terminal status to its prompt channel."""
    try:
        r = _get_async_client()
        await r.publish(channel_for(task.prompt_id), json.dumps(task_update_message(task)))
    except Exception:
        # Best-effort: never fail the poller
        logger.warning("Failed to publish task update for %s", task.id, exc_info=True)


# ──────── Subscriber (used by the WebSocket handler) ────────

async def subscribe_prompt(prompt_id: str) -> aioredis.client.PubSub:
    """Create a PubSub subscription for a prompt channel.

    Caller should close the pubsub when done, but NOT the shared client.
    """
    pubsub = _get_async_client().pubsub()
    await pubsub.subscribe(channel_for(prompt_id))
    return pubsub


async def listen_pubsub(pubsub: aioredis.client.PubSub):
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue


async def close_pubsub_client() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
