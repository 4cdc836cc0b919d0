"""
Speculative cache warming for location and product search.

Warming issues the same cached searches a typing operator would, one per
short prefix, so the first keystrokes hit the read cache instead of the
store.
"""

import asyncio
from typing import Any, Dict, List, Optional

from shared.logging import get_logger


NAMESPACES = ("locations", "products")
MAX_SEED_PREFIX = 3
SAMPLE_PREFIX_LENGTH = 2


def seed_prefixes(seed: str, max_length: int = MAX_SEED_PREFIX) -> List[str]:
    """`"Rak"` -> `["r", "ra", "rak"]`."""
    text = seed.strip().lower()
    return [text[:size] for size in range(1, min(max_length, len(text)) + 1)]


def _dedupe(prefixes: List[str]) -> List[str]:
    seen = set()
    unique = []
    for prefix in prefixes:
        if prefix and prefix not in seen:
            seen.add(prefix)
            unique.append(prefix)
    return unique


class WarmupOrchestrator:
    """Primes the versioned read cache with prefix searches."""

    def __init__(self, store, queries, *, sample_limit: int = 4, concurrency: int = 5):
        self.store = store
        self.queries = queries
        self.sample_limit = sample_limit
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self.logger = get_logger("opname.warmup")

    def build_plan(self, location_query: Optional[str] = None, product_query: Optional[str] = None) -> Dict[str, List[str]]:
        """Prefixes to warm per namespace; unseeded namespaces share one catalog scan."""
        seeds = {"locations": location_query, "products": product_query}
        sampled: Optional[Dict[str, List[str]]] = None
        plan: Dict[str, List[str]] = {}
        for namespace in NAMESPACES:
            seed = seeds[namespace]
            if seed and seed.strip():
                plan[namespace] = _dedupe(seed_prefixes(seed))
                continue
            if sampled is None:
                sampled = self._sample_prefixes()
            plan[namespace] = sampled[namespace]
        return plan

    def _sample_prefixes(self) -> Dict[str, List[str]]:
        """Single catalog pass collecting distinct 2-character prefixes per namespace."""
        samples: Dict[str, List[str]] = {namespace: [] for namespace in NAMESPACES}
        seen_values: Dict[str, set] = {namespace: set() for namespace in NAMESPACES}

        for row in self.store.catalog:
            for namespace, value in (("locations", row.location), ("products", row.productName)):
                bucket = samples[namespace]
                if len(bucket) >= self.sample_limit:
                    continue
                text = str(value).strip().lower()
                if not text or text in seen_values[namespace]:
                    continue
                seen_values[namespace].add(text)
                prefix = text[:SAMPLE_PREFIX_LENGTH]
                if len(prefix) == SAMPLE_PREFIX_LENGTH and prefix not in bucket:
                    bucket.append(prefix)
            if all(len(samples[namespace]) >= self.sample_limit for namespace in NAMESPACES):
                break

        return samples

    async def warm(self, location_query: Optional[str] = None, product_query: Optional[str] = None) -> Dict[str, Any]:
        """Run the warm plan. Returns counts of searches issued per namespace."""
        plan = self.build_plan(location_query, product_query)
        summary: Dict[str, Any] = {
            "planned": {namespace: len(prefixes) for namespace, prefixes in plan.items()},
            "warmed": {namespace: 0 for namespace in NAMESPACES},
            "errors": [],
        }

        tasks = [
            self._warm_prefix(namespace, prefix)
            for namespace, prefixes in plan.items()
            for prefix in prefixes
        ]
        if not tasks:
            self.logger.info("Nothing to warm; catalog is empty")
            return summary

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for outcome in results:
            if isinstance(outcome, Exception):
                self.logger.error("Cache warm task failed", error=str(outcome))
                summary["errors"].append(str(outcome))
                continue
            summary["warmed"][outcome] += 1

        self.logger.info(
            "Cache warm completed",
            warmed=summary["warmed"],
            errors=len(summary["errors"]),
        )
        return summary

    async def _warm_prefix(self, namespace: str, prefix: str) -> str:
        async with self._semaphore:
            if namespace == "locations":
                await self.queries.search_locations(prefix)
            else:
                await self.queries.search_products(prefix)
        return namespace
