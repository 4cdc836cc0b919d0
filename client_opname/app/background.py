"""
Fire-and-forget task spawning for background fetches, preloads and warmups.
"""

import asyncio
from typing import Any, Awaitable, Optional, Set

from shared.logging import get_logger


logger = get_logger("client.background")

# Strong references so pending tasks are not garbage collected mid-flight.
_pending: Set[asyncio.Task] = set()


def fire_and_forget(awaitable: Awaitable[Any], name: str) -> asyncio.Task:
    """Schedule `awaitable`; failures are logged and resolve to None."""

    async def runner() -> Optional[Any]:
        try:
            return await awaitable
        except Exception as exc:
            logger.debug("Background call failed", call=name, error=str(exc))
            return None

    task = asyncio.ensure_future(runner())
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task
