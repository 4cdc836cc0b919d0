"""
HTTP client for the stock opname endpoint.

All calls post the `{action, ...payload}` envelope. Read-like actions are
answered from a short-lived in-memory response cache when possible, and
identical concurrent requests share one round trip.
"""

import asyncio
import json
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from shared.errors import TransientNetworkError
from shared.logging import get_logger
from .background import fire_and_forget


# Seconds; only these actions are cached in memory.
CACHE_TTL: Dict[str, float] = {
    "searchLocations": 120,
    "searchProducts": 120,
    "lookupBarcode": 120,
    "getProducts": 60,
    "getHistory": 60,
    "warmupCache": 300,
    "getAllLocations": 300,
    "getAllProducts": 300,
}
MEM_CACHE_PRUNE_SIZE = 200
MEM_CACHE_PRUNE_AGE = 300
PRELOAD_HISTORY_WINDOW = 15
PRELOAD_PRODUCTS_WINDOW = 30


class OpnameApiClient:
    """Envelope client with response caching and in-flight deduplication."""

    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport
        self.clock = clock
        self.logger = get_logger("client.api")

        self._mem_cache: Dict[str, tuple] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self._preloaded: Dict[str, float] = {}

    # ------------------------------------------------------------------
    # Memory cache

    def _get_mem(self, key: str, ttl: float) -> Optional[Dict[str, Any]]:
        entry = self._mem_cache.get(key)
        if entry is None:
            return None
        data, stored_at = entry
        if self.clock() - stored_at > ttl:
            del self._mem_cache[key]
            return None
        return data

    def _set_mem(self, key: str, data: Dict[str, Any]) -> None:
        now = self.clock()
        self._mem_cache[key] = (data, now)
        if len(self._mem_cache) > MEM_CACHE_PRUNE_SIZE:
            for name, (_, stored_at) in list(self._mem_cache.items()):
                if now - stored_at > MEM_CACHE_PRUNE_AGE:
                    del self._mem_cache[name]

    def invalidate_mem_cache(self, prefix: Optional[str] = None) -> None:
        """Drop cached responses for one action (all actions when None)."""
        if prefix is None:
            self._mem_cache.clear()
            return
        for name in [name for name in self._mem_cache if name.startswith(prefix + ":")]:
            del self._mem_cache[name]

    # ------------------------------------------------------------------
    # Transport

    async def call(self, action: str, data: Optional[Dict[str, Any]] = None, *, skip_mem_cache: bool = False) -> Dict[str, Any]:
        """Post one envelope. Raises TransientNetworkError on transport failure."""
        data = data or {}
        dedup_key = action + ":" + json.dumps(data, sort_keys=True, default=str)
        ttl = CACHE_TTL.get(action)

        if ttl and not skip_mem_cache:
            cached = self._get_mem(dedup_key, ttl)
            if cached is not None:
                return cached

        inflight = self._inflight.get(dedup_key)
        if inflight is None:
            inflight = asyncio.ensure_future(self._send(action, data, dedup_key, ttl))
            self._inflight[dedup_key] = inflight
            inflight.add_done_callback(lambda _: self._inflight.pop(dedup_key, None))
        return await asyncio.shield(inflight)

    async def _send(self, action: str, data: Dict[str, Any], dedup_key: str, ttl: Optional[float]) -> Dict[str, Any]:
        body = json.dumps({"action": action, **data}, default=str)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                # text/plain keeps the request "simple" for the backend's CORS setup.
                response = await client.post(self.api_url, content=body, headers={"Content-Type": "text/plain"})
        except httpx.TimeoutException:
            self.logger.warning("Request timeout", action=action)
            return {"success": False, "message": "Request timeout"}
        except httpx.HTTPError as exc:
            self.logger.error("API call error", action=action, error=str(exc))
            raise TransientNetworkError(str(exc) or "Network error", details={"action": action})

        if response.status_code != 200:
            raise TransientNetworkError(
                f"HTTP error! status: {response.status_code}",
                details={"action": action, "status_code": response.status_code},
            )
        try:
            result = response.json()
        except ValueError:
            raise TransientNetworkError("Malformed response body", details={"action": action})

        if ttl and result.get("success") is not False:
            self._set_mem(dedup_key, result)
        return result

    # ------------------------------------------------------------------
    # Actions

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        return await self.call("login", {"email": email, "password": password})

    async def get_products(self, location_code: str, *, skip_mem_cache: bool = False) -> Dict[str, Any]:
        return await self.call("getProducts", {"locationCode": location_code}, skip_mem_cache=skip_mem_cache)

    async def get_history(self, operator: str, period: Optional[str] = None, *, skip_mem_cache: bool = False) -> Dict[str, Any]:
        return await self.call("getHistory", {"operator": operator, "filter": period}, skip_mem_cache=skip_mem_cache)

    async def lookup_barcode(self, barcode: str) -> Dict[str, Any]:
        return await self.call("lookupBarcode", {"barcode": barcode})

    async def search_products(self, query: str) -> Dict[str, Any]:
        return await self.call("searchProducts", {"query": query})

    async def search_locations(self, query: str) -> Dict[str, Any]:
        return await self.call("searchLocations", {"query": query})

    async def get_all_locations(self) -> Dict[str, Any]:
        return await self.call("getAllLocations")

    async def get_all_products(self) -> Dict[str, Any]:
        return await self.call("getAllProducts")

    async def warmup_cache(self, location_query: Optional[str] = None, product_query: Optional[str] = None) -> Dict[str, Any]:
        payload = {}
        if location_query:
            payload["locationQuery"] = location_query
        if product_query:
            payload["productQuery"] = product_query
        return await self.call("warmupCache", payload)

    async def save_stock_opname(self, operator: str, location: str, timestamp: str, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.invalidate_mem_cache("getHistory")
        self.invalidate_mem_cache("getProducts")
        return await self.call("saveStockOpname", {
            "operator": operator,
            "location": location,
            "timestamp": timestamp,
            "items": items,
        })

    async def update_entry(self, row_id: str, new_qty: int, edit_timestamp: str, **extra: Any) -> Dict[str, Any]:
        self.invalidate_mem_cache("getHistory")
        payload = {"rowId": row_id, "newQty": new_qty, "editTimestamp": edit_timestamp}
        payload.update({name: value for name, value in extra.items() if value is not None})
        return await self.call("updateEntry", payload)

    async def delete_entry(self, row_id: str) -> Dict[str, Any]:
        self.invalidate_mem_cache("getHistory")
        self.invalidate_mem_cache("getProducts")
        return await self.call("deleteEntry", {"rowId": row_id})

    async def delete_product(self, location_code: str, sku: str) -> Dict[str, Any]:
        self.invalidate_mem_cache("getProducts")
        self.invalidate_mem_cache("getHistory")
        return await self.call("deleteProduct", {"locationCode": location_code, "sku": sku})

    async def add_master_product(self, location_code: str, product_name: str, sku: str, batch: str, barcode: str = "") -> Dict[str, Any]:
        self.invalidate_mem_cache("getProducts")
        self.invalidate_mem_cache("getAllProducts")
        return await self.call("addMasterProduct", {
            "locationCode": location_code,
            "productName": product_name,
            "sku": sku,
            "batch": batch,
            "barcode": barcode,
        })

    # ------------------------------------------------------------------
    # Fire-and-forget helpers

    def warm_up(self, location_query: Optional[str] = None, product_query: Optional[str] = None) -> asyncio.Task:
        """Ask the server to prime its search cache; the result is ignored."""
        return fire_and_forget(self.warmup_cache(location_query, product_query), "warmupCache")

    def preload_history(self, operator: str, period: Optional[str] = None) -> Optional[asyncio.Task]:
        """Prefetch history so switching to it is instant; re-arms after a short window."""
        return self._preload(f"history:{operator}:{period or 'all'}", PRELOAD_HISTORY_WINDOW,
                             lambda: self.get_history(operator, period))

    def preload_products(self, location_code: str) -> Optional[asyncio.Task]:
        return self._preload(f"products:{location_code}", PRELOAD_PRODUCTS_WINDOW,
                             lambda: self.get_products(location_code))

    def _preload(self, key: str, window: float, fetch) -> Optional[asyncio.Task]:
        now = self.clock()
        armed_at = self._preloaded.get(key)
        if armed_at is not None and now - armed_at < window:
            return None
        self._preloaded[key] = now
        return fire_and_forget(fetch(), f"preload:{key}")
