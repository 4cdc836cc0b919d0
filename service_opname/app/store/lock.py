"""
Store-wide mutation lock with a bounded, fail-fast acquisition wait.

The store lives in one process, so the lock does too: an async context
manager that raises LockTimeoutError when the lock cannot be taken within
the wait. Callers are never queued beyond that wait and nothing retries
for them.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from shared.errors import LockTimeoutError
from shared.logging import get_logger


class LocalStoreLock:
    """asyncio.Lock guarded by a bounded wait."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._lock = asyncio.Lock()
        self.logger = get_logger("opname.lock")

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self, timeout: Optional[float] = None) -> None:
        wait = self.timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            self.logger.warning("Store lock wait exceeded", timeout=wait)
            raise LockTimeoutError(details={"timeout_seconds": wait})

    async def release(self) -> None:
        self._lock.release()

    @asynccontextmanager
    async def hold(self, timeout: Optional[float] = None) -> AsyncIterator[None]:
        await self.acquire(timeout)
        try:
            yield
        finally:
            await self.release()
