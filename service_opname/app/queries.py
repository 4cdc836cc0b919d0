"""
Read operations served through the versioned read cache.

Reads never take the store lock. Each result reflects some committed version,
possibly stale by up to the operation's TTL.
"""

from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from .caching.versioned_cache import VersionedReadCache
from .store import SheetStore


PRODUCT_SEARCH_LIMIT = 10
LOCATION_SEARCH_LIMIT = 15


class CatalogQueries:
    """Catalog and history reads."""

    def __init__(self, store: SheetStore, cache: VersionedReadCache):
        self.store = store
        self.cache = cache
        self.logger = get_logger("opname.queries")

    async def get_products(self, location_code: str) -> Dict[str, Any]:
        location_code = (location_code or "").strip()

        async def load():
            products = [row.to_product() for row in self.store.catalog_for_location(location_code)]
            if not products:
                return {"success": False, "message": "Location not found"}
            return {"success": True, "products": products}

        return await self.cache.read_through("getProducts", {"locationCode": location_code}, load)

    async def get_history(self, operator: str, period: Optional[str] = None) -> Dict[str, Any]:
        period = (period or "all").strip().lower()

        async def load():
            operator_name = self.store.operator_name(operator)
            rows = self.store.history_for(operator_name, period)
            return {"success": True, "history": [row.to_dict() for row in rows]}

        return await self.cache.read_through("getHistory", {"operator": operator, "filter": period}, load)

    async def lookup_barcode(self, barcode: str) -> Dict[str, Any]:
        barcode = str(barcode or "").strip()

        async def load():
            if barcode:
                for row in self.store.catalog:
                    if row.barcode.strip() == barcode:
                        return {"success": True, "product": row.to_product()}
            return {"success": False, "message": f"No product found for barcode: {barcode}"}

        return await self.cache.read_through("lookupBarcode", {"barcode": barcode}, load)

    async def search_products(self, query: str) -> Dict[str, Any]:
        needle = str(query or "").strip().lower()
        if not needle:
            return {"success": True, "products": []}

        async def load():
            results: List[Dict[str, Any]] = []
            seen = set()
            for row in self.store.catalog:
                if needle in row.productName.lower() and row.sku not in seen:
                    seen.add(row.sku)
                    results.append(row.to_product())
                    if len(results) >= PRODUCT_SEARCH_LIMIT:
                        break
            return {"success": True, "products": results}

        return await self.cache.read_through("searchProducts", {"query": needle}, load)

    async def search_locations(self, query: str) -> Dict[str, Any]:
        needle = str(query or "").strip().lower()
        if not needle:
            return {"success": True, "locations": []}

        async def load():
            counts = self._location_counts()
            results = [
                {"locationCode": code, "productCount": count}
                for code, count in counts.items()
                if needle in code.lower()
            ]
            return {"success": True, "locations": results[:LOCATION_SEARCH_LIMIT]}

        return await self.cache.read_through("searchLocations", {"query": needle}, load)

    async def get_all_locations(self) -> Dict[str, Any]:
        async def load():
            counts = self._location_counts()
            return {
                "success": True,
                "locations": [{"locationCode": code, "productCount": count} for code, count in counts.items()],
            }

        return await self.cache.read_through("getAllLocations", None, load)

    async def get_all_products(self) -> Dict[str, Any]:
        async def load():
            products: List[Dict[str, Any]] = []
            seen = set()
            for row in self.store.catalog:
                if row.sku in seen:
                    continue
                seen.add(row.sku)
                products.append(row.to_product())
            return {"success": True, "products": products}

        return await self.cache.read_through("getAllProducts", None, load)

    def _location_counts(self) -> Dict[str, int]:
        """Product count per location, in first-seen order."""
        counts: Dict[str, int] = {}
        for row in self.store.catalog:
            code = row.location.strip()
            if code:
                counts[code] = counts.get(code, 0) + 1
        return counts
