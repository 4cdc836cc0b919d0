"""
Mutation coordinator: the only writer of the store.

Every mutation runs inside the store lock. The version token is bumped as
the last step of the same critical section, and only when the mutation
actually changed the store, so no reader observes new data under an old
version or a new version over unchanged data.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from shared.errors import LockTimeoutError, NotFoundError
from shared.logging import get_logger
from ..models import (
    AddMasterProductRequest,
    CountItem,
    SaveStockOpnameRequest,
    UpdateEntryRequest,
)
from ..store import CatalogRow, CountLogRow, SheetStore


MutationResult = Tuple[Dict[str, Any], bool]


class MutationCoordinator:
    """Serializes writes through the store lock and advances the version token."""

    def __init__(
        self,
        store: SheetStore,
        lock,
        *,
        cache=None,
        metrics=None,
        lock_timeout: Optional[float] = None,
    ):
        self.store = store
        self.lock = lock
        self.cache = cache
        self.metrics = metrics
        self.lock_timeout = lock_timeout
        self.logger = get_logger("opname.coordinator")

    async def _commit(self, operation: str, mutate: Callable[[], MutationResult]) -> Dict[str, Any]:
        """Run `mutate` under the lock; bump the version if it reports a change."""
        try:
            async with self.lock.hold(self.lock_timeout):
                result, changed = mutate()
                if changed:
                    result["version"] = await self._bump(operation)
        except LockTimeoutError:
            if self.metrics:
                self.metrics.increment_counter("lock_timeouts_total", operation=operation)
            self.logger.warning("Mutation rejected, store busy", operation=operation)
            raise

        if changed and self.metrics:
            self.metrics.increment_counter("mutations_committed_total", operation=operation)
        return result

    async def _bump(self, operation: str) -> Optional[int]:
        try:
            version = await self.store.version.bump()
        except Exception as exc:
            # Data is already written; fall back to dropping cached reads.
            self.logger.error("Version bump failed after commit", operation=operation, error=str(exc))
            if self.cache is not None:
                await self.cache.clear()
            return None

        if self.metrics:
            self.metrics.record_version(version)
        self.logger.info("Mutation committed", operation=operation, version=version)
        return version

    # ------------------------------------------------------------------
    # Count log

    async def save_stock_opname(self, request: SaveStockOpnameRequest) -> Dict[str, Any]:
        """Append a batch of count rows and sync the location's catalog."""

        def mutate() -> MutationResult:
            session_id = self.store.new_session_id()
            timestamp = self.store.format_timestamp(request.timestamp)
            operator_name = self.store.operator_name(request.operator)

            taken = set()
            rows: List[CountLogRow] = []
            for item in request.items:
                row_id = self.store.new_row_id(taken)
                taken.add(row_id)
                rows.append(CountLogRow(
                    sessionId=session_id,
                    rowId=row_id,
                    timestamp=timestamp,
                    operator=operator_name,
                    location=request.location,
                    productName=item.productName,
                    sku=item.sku,
                    batch=item.batch,
                    qty=item.qty,
                    formula=item.formula,
                ))

            self.store.append_entries(rows)
            added = self._sync_catalog(request.location, request.items)
            return {
                "success": True,
                "message": "Stock opname saved",
                "sessionId": session_id,
                "rowIds": [row.rowId for row in rows],
                "catalogAdded": added,
            }, True

        return await self._commit("saveStockOpname", mutate)

    async def update_entry(self, request: UpdateEntryRequest) -> Dict[str, Any]:
        """Edit one count row in place."""

        def mutate() -> MutationResult:
            row = self.store.find_entry(request.rowId)
            if row is None:
                raise NotFoundError("Entry not found", details={"rowId": request.rowId})

            if request.productName is not None:
                row.productName = request.productName
            if request.sku is not None:
                row.sku = request.sku
            if request.batch is not None:
                row.batch = request.batch
            if request.formula is not None:
                row.formula = request.formula
            row.qty = request.newQty
            row.edited = "Yes"
            row.editTimestamp = self.store.format_timestamp(request.editTimestamp)
            return {"success": True, "message": "Entry updated", "entry": row.to_dict()}, True

        return await self._commit("updateEntry", mutate)

    async def delete_entry(self, row_id: str) -> Dict[str, Any]:
        """Delete one count row and the catalog row it was counted against."""

        def mutate() -> MutationResult:
            row = self.store.remove_entry(row_id)
            if row is None:
                raise NotFoundError("Entry not found", details={"rowId": row_id})

            catalog_removed = False
            if row.location and row.sku:
                # Already-absent catalog rows are fine here.
                catalog_removed = self.store.remove_catalog_row(row.location, row.sku)
            return {
                "success": True,
                "message": "Entry deleted",
                "catalogRemoved": catalog_removed,
            }, True

        return await self._commit("deleteEntry", mutate)

    # ------------------------------------------------------------------
    # Catalog

    async def delete_product(self, location: str, sku: str) -> Dict[str, Any]:
        def mutate() -> MutationResult:
            if not self.store.remove_catalog_row(location, sku):
                raise NotFoundError(
                    "Product not found at this location",
                    details={"locationCode": location, "sku": sku},
                )
            return {"success": True, "message": "Product removed from location"}, True

        return await self._commit("deleteProduct", mutate)

    async def add_master_product(self, request: AddMasterProductRequest) -> Dict[str, Any]:
        def mutate() -> MutationResult:
            added = self.store.insert_catalog_row(CatalogRow(
                location=request.locationCode,
                productName=request.productName,
                sku=request.sku,
                batch=request.batch,
                barcode=request.barcode,
            ))
            if not added:
                return {"success": True, "message": "Product already listed at this location", "added": False}, False
            return {"success": True, "message": "Product added", "added": True}, True

        return await self._commit("addMasterProduct", mutate)

    async def sync_catalog(self, location: str, items: Iterable[CountItem]) -> Dict[str, Any]:
        """Standalone catalog sync; re-running it with the same input is a no-op."""
        items = list(items)

        def mutate() -> MutationResult:
            added = self._sync_catalog(location, items)
            return {"success": True, "catalogAdded": added}, added > 0

        return await self._commit("syncCatalog", mutate)

    def _sync_catalog(self, location: str, items: Iterable[CountItem]) -> int:
        """Insert catalog rows for SKUs not yet listed at `location`. Caller holds the lock."""
        added = 0
        for item in items:
            inserted = self.store.insert_catalog_row(CatalogRow(
                location=location,
                productName=item.productName,
                sku=item.sku,
                batch=item.batch,
                barcode=item.barcode,
            ))
            if inserted:
                added += 1
        return added
