"""
Opname caching package.

Provides the versioned read cache that fronts the store and the warmup
orchestrator that primes it. Entries are never deleted on write: bumping the
store version makes them unreachable.
"""

from .versioned_cache import VersionedReadCache, is_cacheable, normalize_query
from .warmup import WarmupOrchestrator, seed_prefixes

__all__ = [
    "VersionedReadCache",
    "WarmupOrchestrator",
    "is_cacheable",
    "normalize_query",
    "seed_prefixes",
]
