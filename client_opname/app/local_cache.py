"""
Device-local persisted cache.

Entries are stored as `{namespacedKey: {data, writtenAtEpochMs}}` in one JSON
file. Age is computed at read time. Every failure (missing file, corrupt
JSON, unwritable disk) degrades to a miss or a skipped write: the cache is
never on the correctness path.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from shared.errors import CacheDecodeError
from shared.logging import get_logger


PREFIX = "so:"


@dataclass(frozen=True)
class CachedValue:
    """A persisted value and how old it is."""

    data: Any
    age_seconds: float


class LocalCache:
    """JSON-file key/value store with last-write-wins per key."""

    def __init__(self, path: Union[str, Path], clock: Callable[[], float] = time.time):
        self._path = Path(path)
        self._clock = clock
        self._lock = threading.Lock()
        self.logger = get_logger("client.local_cache")

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[CachedValue]:
        with self._lock:
            entries = self._load()
        raw = entries.get(PREFIX + key)
        if raw is None:
            return None
        try:
            data, written_at_ms = self._decode(raw)
        except CacheDecodeError as exc:
            self.logger.debug("Ignoring corrupt cache entry", key=key, error=exc.message)
            return None
        age = max(0.0, (self._now_ms() - written_at_ms) / 1000)
        return CachedValue(data=data, age_seconds=age)

    def set(self, key: str, data: Any) -> None:
        with self._lock:
            entries = self._load()
            entries[PREFIX + key] = {"data": data, "writtenAtEpochMs": self._now_ms()}
            self._store(entries)

    def clear(self, prefix: str = "") -> int:
        """Remove every key starting with `prefix` (all keys when empty)."""
        full_prefix = PREFIX + prefix
        with self._lock:
            entries = self._load()
            doomed = [name for name in entries if name.startswith(full_prefix)]
            for name in doomed:
                del entries[name]
            if doomed:
                self._store(entries)
        return len(doomed)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def _decode(raw: Any):
        if not isinstance(raw, dict) or "data" not in raw:
            raise CacheDecodeError(details={"entry": str(raw)[:80]})
        try:
            return raw["data"], int(raw["writtenAtEpochMs"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheDecodeError(details={"error": str(exc)})

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (ValueError, OSError) as exc:
            self.logger.warning("Local cache unreadable; starting empty", path=str(self._path), error=str(exc))
            return {}
        return payload if isinstance(payload, dict) else {}

    def _store(self, entries: Dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".opname-cache-")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(entries, handle)
            os.replace(tmp_name, self._path)
        except (OSError, TypeError, ValueError) as exc:
            self.logger.warning("Local cache write skipped", path=str(self._path), error=str(exc))
