"""
Version token counter.

The version token is bumped exactly once per committed mutation and is part
of every read-cache key, so bumping it invalidates all cached reads at once.
Counters restart at zero with the process, so each counter also carries an
epoch: a random id fixed when it is built. Read-cache keys include the epoch,
which keeps a restarted store from reading entries another store wrote at
the same version number.
"""

import uuid
from typing import Optional


class LocalVersionCounter:
    """In-process monotonic counter for the single-worker service."""

    def __init__(self, initial: int = 0, epoch: Optional[str] = None):
        self._value = initial
        self.epoch = epoch or uuid.uuid4().hex

    async def current(self) -> int:
        return self._value

    async def bump(self) -> int:
        # Runs on the event loop with no await between read and write.
        self._value += 1
        return self._value
