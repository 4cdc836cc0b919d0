"""
History and product-list views.

Both views render from the local cache first, revalidate against the server,
and mutate optimistically through `OptimisticStore`.
"""

from typing import Any, Callable, Dict, List, Optional

from shared.errors import OpnameError
from shared.logging import get_logger
from .api_client import OpnameApiClient
from .local_cache import LocalCache
from .notifications import Notifier
from .optimistic import OptimisticCommand, OptimisticStore, PendingMutation


HISTORY_NAMESPACE = "history:"
PRODUCTS_NAMESPACE = "products:"

Renderer = Callable[[List[Dict[str, Any]], Optional[float]], None]


class _CachedListView:
    """Stale-while-revalidate loading of one list-valued cache key."""

    result_field = "data"
    load_failure_message = "Failed to load data"

    def __init__(self, key: str, api: OpnameApiClient, cache: LocalCache, notifier: Notifier,
                 renderer: Optional[Renderer] = None):
        self.api = api
        self.cache = cache
        self.notifier = notifier
        self.renderer = renderer
        self.store = OptimisticStore(key, cache, api, notifier, initial=[])
        # Seconds since the shown data was fetched; None once it is live.
        self.age_seconds: Optional[float] = None
        self.logger = get_logger("client.views")

    @property
    def items(self) -> List[Dict[str, Any]]:
        return self.store.state or []

    async def fetch(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def load(self) -> List[Dict[str, Any]]:
        """Render the persisted copy (if any), then replace it with live data."""
        cached = self.cache.get(self.store.key)
        showing_cached = cached is not None and isinstance(cached.data, list)
        if showing_cached:
            self.store.state = cached.data
            self.age_seconds = cached.age_seconds
            self._render()

        try:
            result = await self.fetch()
        except OpnameError as exc:
            result = {"success": False, "message": exc.message}

        if result.get("success") is True:
            self.store.replace(result.get(self.result_field) or [])
            self.age_seconds = None
            self._render()
        elif showing_cached:
            self.logger.debug("Revalidation failed; keeping cached data",
                              key=self.store.key, reason=result.get("message"))
        else:
            self.notifier.error(result.get("message") or self.load_failure_message)
        return self.items

    def _render(self) -> None:
        if self.renderer is not None:
            self.renderer(self.items, self.age_seconds)


class _RowCommand(OptimisticCommand):
    """Command touching the rows of a list view that share one key value."""

    key_field = "rowId"

    @property
    def key_value(self) -> str:
        raise NotImplementedError

    def _matches(self, row: Dict[str, Any]) -> bool:
        return row.get(self.key_field) == self.key_value

    def _reinsert(self, state, snapshot):
        """Put the snapshot's matching rows back after their nearest surviving neighbour."""
        restored = list(state or [])
        if any(self._matches(row) for row in restored):
            return restored
        present = {row.get(self.key_field) for row in restored}
        position = 0
        for row in snapshot or []:
            if self._matches(row):
                restored.insert(position, row)
                position += 1
            elif row.get(self.key_field) in present:
                key = row.get(self.key_field)
                position = next(i for i, cur in enumerate(restored) if cur.get(self.key_field) == key) + 1
        return restored


class DeleteEntryCommand(_RowCommand):
    name = "deleteEntry"
    success_message = "Entry deleted"
    failure_message = "Failed to delete entry"
    invalidates = (PRODUCTS_NAMESPACE,)

    def __init__(self, row_id: str):
        self.row_id = row_id

    @property
    def key_value(self) -> str:
        return self.row_id

    def apply(self, state):
        return [entry for entry in state or [] if not self._matches(entry)]

    def compensate(self, state, snapshot):
        return self._reinsert(state, snapshot)

    async def send(self, api: OpnameApiClient) -> dict:
        return await api.delete_entry(self.row_id)


class EditEntryCommand(_RowCommand):
    name = "updateEntry"
    success_message = "Quantity updated"
    failure_message = "Failed to update quantity"

    def __init__(self, row_id: str, new_qty: int, edit_timestamp: str, formula: str = ""):
        self.row_id = row_id
        self.new_qty = new_qty
        self.edit_timestamp = edit_timestamp
        self.formula = formula

    @property
    def key_value(self) -> str:
        return self.row_id

    def apply(self, state):
        updated = []
        for entry in state or []:
            if self._matches(entry):
                entry = dict(
                    entry,
                    qty=self.new_qty,
                    edited="Yes",
                    editTimestamp=self.edit_timestamp,
                    formula=self.formula,
                )
            updated.append(entry)
        return updated

    def compensate(self, state, snapshot):
        # Only this row goes back; a row deleted meanwhile stays deleted.
        previous = next((entry for entry in snapshot or [] if self._matches(entry)), None)
        if previous is None:
            return list(state or [])
        return [previous if self._matches(entry) else entry for entry in state or []]

    async def send(self, api: OpnameApiClient) -> dict:
        return await api.update_entry(self.row_id, self.new_qty, self.edit_timestamp, formula=self.formula)


class DeleteProductCommand(_RowCommand):
    name = "deleteProduct"
    success_message = "Product removed"
    failure_message = "Failed to remove product"
    invalidates = (HISTORY_NAMESPACE,)
    key_field = "sku"

    def __init__(self, location_code: str, sku: str):
        self.location_code = location_code
        self.sku = sku

    @property
    def key_value(self) -> str:
        return self.sku

    def apply(self, state):
        return [product for product in state or [] if not self._matches(product)]

    def compensate(self, state, snapshot):
        return self._reinsert(state, snapshot)

    async def send(self, api: OpnameApiClient) -> dict:
        return await api.delete_product(self.location_code, self.sku)


class HistoryView(_CachedListView):
    """Count-log entries for one operator and period filter."""

    result_field = "history"
    load_failure_message = "Failed to load history"

    def __init__(self, api: OpnameApiClient, cache: LocalCache, notifier: Notifier,
                 operator: str, period: str = "all", renderer: Optional[Renderer] = None):
        self.operator = operator
        self.period = period
        super().__init__(f"{HISTORY_NAMESPACE}{operator}:{period}", api, cache, notifier, renderer)

    async def fetch(self) -> Dict[str, Any]:
        return await self.api.get_history(self.operator, self.period)

    def delete_entry(self, row_id: str) -> PendingMutation:
        return self.store.execute(DeleteEntryCommand(row_id))

    def edit_entry(self, row_id: str, new_qty: int, edit_timestamp: str, formula: str = "") -> PendingMutation:
        return self.store.execute(EditEntryCommand(row_id, new_qty, edit_timestamp, formula))


class ProductListView(_CachedListView):
    """Catalog products stocked at one location."""

    result_field = "products"
    load_failure_message = "Failed to load products"

    def __init__(self, api: OpnameApiClient, cache: LocalCache, notifier: Notifier,
                 location_code: str, renderer: Optional[Renderer] = None):
        self.location_code = location_code
        super().__init__(f"{PRODUCTS_NAMESPACE}{location_code}", api, cache, notifier, renderer)

    async def fetch(self) -> Dict[str, Any]:
        return await self.api.get_products(self.location_code)

    def delete_product(self, sku: str) -> PendingMutation:
        return self.store.execute(DeleteProductCommand(self.location_code, sku))
