"""Time source shared by the provider client, pollers and recovery sweep.

Everything that waits or measures elapsed time goes through a ``Clock`` so
tests can swap in a simulated one and run minutes of polling instantly.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Wall-clock implementation backed by ``time`` and ``asyncio.sleep``."""

    def now(self) -> datetime:
        return utcnow()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
