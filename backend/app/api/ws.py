"""WebSocket endpoint for real-time generation task updates.

Relays the Redis Pub/Sub messages published by pollers to browser clients
watching a prompt.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.pubsub import listen_pubsub, subscribe_prompt

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/prompts/{prompt_id}")
async def ws_prompt(ws: WebSocket, prompt_id: str):
    """Stream task updates for one prompt; answers "ping" with a pong."""
    await ws.accept()
    logger.info("WS connected: prompt=%s", prompt_id)

    pubsub = None
    listener_task = None
    try:
        pubsub = await subscribe_prompt(prompt_id)
        listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, prompt_id))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: prompt=%s", prompt_id)
    except Exception as exc:
        logger.warning("WS error for prompt=%s: %s", prompt_id, exc)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.aclose()


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, prompt_id: str):
    """Background task: read from Redis Pub/Sub and forward to the WebSocket client."""
    try:
        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except Exception:
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay error for prompt=%s: %s", prompt_id, exc)
