"""
Versioned read cache for the Stock Opname service.

Keys combine the operation name, the store's epoch and current version token
and the normalized query. A committed mutation bumps the version, so every entry
written before it becomes unreachable without any explicit deletes. TTL is
enforced at read time against the entry's own `written_at`.
"""

import hashlib
import json
import math
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis

from shared.errors import CacheDecodeError
from shared.logging import get_logger


KEY_PREFIX = "opname:read"
DEFAULT_TTL = 60


def normalize_query(query: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty fields and trim strings so equivalent queries share a key."""
    normalized: Dict[str, Any] = {}
    for name, value in (query or {}).items():
        if value is None:
            continue
        normalized[name] = value.strip() if isinstance(value, str) else value
    return normalized


def is_cacheable(payload: Optional[Dict[str, Any]]) -> bool:
    """Only successful, non-empty results are cached."""
    if not payload or payload.get("success") is not True:
        return False
    return any(
        value not in (None, "", [], {})
        for name, value in payload.items()
        if name != "success"
    )


class VersionedReadCache:
    """Redis-backed read cache keyed by (operation, epoch, version, query)."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        version_counter,
        *,
        ttls: Optional[Dict[str, int]] = None,
        default_ttl: int = DEFAULT_TTL,
        metrics=None,
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis_client
        self.version = version_counter
        self.epoch = str(getattr(version_counter, "epoch", ""))
        self.ttls = dict(ttls or {})
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("opname.cache")

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def ttl_for(self, operation: str) -> int:
        return int(self.ttls.get(operation, self.default_ttl))

    def make_key(self, operation: str, version: int, query: Optional[Dict[str, Any]]) -> str:
        """Bounded-length key; the operation stays readable for prefix clears."""
        key_string = json.dumps([operation, self.epoch, version, normalize_query(query)], sort_keys=True, default=str)
        return f"{KEY_PREFIX}:{operation}:{hashlib.md5(key_string.encode()).hexdigest()}"

    async def current_version(self) -> Optional[int]:
        try:
            return await self.version.current()
        except Exception as exc:
            self.logger.error("Version read failed; bypassing cache", error=str(exc))
            return None

    async def get(self, operation: str, query: Optional[Dict[str, Any]], version: int) -> Optional[Dict[str, Any]]:
        """Cached payload at `version`, or None on miss, expiry, decode or storage error."""
        if not self.enabled:
            return None
        key = self.make_key(operation, version, query)
        try:
            raw = await self.redis.get(key)
        except Exception as exc:
            self.logger.error("Cache get error", operation=operation, error=str(exc))
            return None

        if raw is None:
            self._record(operation, hit=False)
            return None

        try:
            payload, written_at = self._decode(raw)
        except CacheDecodeError as exc:
            self.logger.debug("Discarding corrupt cache entry", key=key, error=exc.message)
            self._record(operation, hit=False)
            return None

        if self.clock() - written_at > self.ttl_for(operation):
            self._record(operation, hit=False)
            return None

        self._record(operation, hit=True)
        return payload

    async def put(self, operation: str, query: Optional[Dict[str, Any]], version: int, payload: Dict[str, Any]) -> bool:
        """Store a payload written at `version`. Never raises."""
        if not self.enabled or not is_cacheable(payload):
            return False
        key = self.make_key(operation, version, query)
        ttl = self.ttl_for(operation)
        try:
            entry = json.dumps({"payload": payload, "written_at": self.clock()}, default=str)
            await self.redis.setex(key, max(1, math.ceil(ttl)), entry)
            self.logger.debug("Cached read", operation=operation, version=version, ttl=ttl)
            return True
        except Exception as exc:
            self.logger.error("Cache set error", operation=operation, error=str(exc))
            return False

    async def read_through(
        self,
        operation: str,
        query: Optional[Dict[str, Any]],
        loader: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        """Serve from cache at the current version, else load live and populate."""
        version = await self.current_version()
        if version is None:
            return await loader()

        cached = await self.get(operation, query, version)
        if cached is not None:
            return cached

        payload = await loader()
        # Written under the version observed before loading: if a mutation
        # committed meanwhile the entry is already unreachable.
        await self.put(operation, query, version, payload)
        return payload

    async def clear(self, operation: Optional[str] = None) -> int:
        """Drop entries of one operation (or all reads) regardless of version."""
        if not self.enabled:
            return 0
        pattern = f"{KEY_PREFIX}:{operation}:*" if operation else f"{KEY_PREFIX}:*"
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            if keys:
                await self.redis.delete(*keys)
                self.logger.info("Cleared cached reads", pattern=pattern, keys_count=len(keys))
            return len(keys)
        except Exception as exc:
            self.logger.error("Cache clear error", pattern=pattern, error=str(exc))
            return 0

    @staticmethod
    def _decode(raw: Any):
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            entry = json.loads(text)
            return entry["payload"], float(entry["written_at"])
        except (UnicodeDecodeError, ValueError, TypeError, KeyError) as exc:
            raise CacheDecodeError(details={"error": str(exc)})

    def _record(self, operation: str, hit: bool) -> None:
        if self.metrics:
            metric = "cache_hits_total" if hit else "cache_misses_total"
            self.metrics.increment_counter(metric, operation=operation)
