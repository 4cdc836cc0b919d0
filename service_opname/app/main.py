"""
Stock Opname service.

A single request/response endpoint accepts the envelope `{action, ...payload}`
and always answers `{success, ...}`. Reads go through the versioned read
cache; writes go through the mutation coordinator.
"""

import hmac
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from pydantic import ValidationError as PydanticValidationError

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import OpnameError, ValidationError
from shared.logging import set_action_context

from .caching import VersionedReadCache, WarmupOrchestrator
from .models import (
    AddMasterProductRequest,
    DeleteEntryRequest,
    DeleteProductRequest,
    GetHistoryRequest,
    GetProductsRequest,
    LoginRequest,
    LookupBarcodeRequest,
    SaveStockOpnameRequest,
    SearchRequest,
    UpdateEntryRequest,
    WarmupRequest,
)
from .mutations import MutationCoordinator
from .queries import CatalogQueries
from .store import LocalStoreLock, SheetStore


ActionHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class OpnameService(BaseService):
    """Stock opname backend: envelope dispatch over store, cache and coordinator."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[SheetStore] = None,
        redis_client: Optional[redis.Redis] = None,
    ):
        super().__init__("opname", 8020, config)

        if redis_client is None and self.config.cache_enabled:
            redis_client = redis.from_url(
                self.config.redis_url,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        self.redis = redis_client

        if store is None:
            store = SheetStore.from_seed_file(
                self.config.seed_path,
                timezone=self.config.timezone,
            )
        self.store = store

        # The store is in-process, so writes serialize on an in-process lock;
        # the service runs as a single worker.
        self.lock = LocalStoreLock(timeout=self.config.lock_timeout_seconds)

        self.cache = VersionedReadCache(
            self.redis if self.config.cache_enabled else None,
            self.store.version,
            ttls={
                "getHistory": self.config.history_ttl_seconds,
                "getProducts": self.config.catalog_ttl_seconds,
                "lookupBarcode": self.config.catalog_ttl_seconds,
                "getAllLocations": self.config.catalog_ttl_seconds,
                "getAllProducts": self.config.catalog_ttl_seconds,
                "searchProducts": self.config.search_ttl_seconds,
                "searchLocations": self.config.search_ttl_seconds,
            },
            metrics=self.metrics,
        )
        self.queries = CatalogQueries(self.store, self.cache)
        self.coordinator = MutationCoordinator(
            self.store,
            self.lock,
            cache=self.cache,
            metrics=self.metrics,
            lock_timeout=self.config.lock_timeout_seconds,
        )
        self.warmup = WarmupOrchestrator(
            self.store,
            self.queries,
            sample_limit=self.config.warm_sample_limit,
        )

        self._actions: Dict[str, ActionHandler] = {
            "login": self._login,
            "getProducts": self._get_products,
            "saveStockOpname": self._save_stock_opname,
            "getHistory": self._get_history,
            "updateEntry": self._update_entry,
            "deleteEntry": self._delete_entry,
            "deleteProduct": self._delete_product,
            "addMasterProduct": self._add_master_product,
            "lookupBarcode": self._lookup_barcode,
            "searchProducts": self._search_products,
            "searchLocations": self._search_locations,
            "getAllLocations": self._get_all_locations,
            "getAllProducts": self._get_all_products,
            "warmupCache": self._warmup_cache,
        }

        self._setup_opname_routes()

    def _setup_opname_routes(self):
        """Set up the envelope endpoint."""

        async def execute(request: Request):
            # Devices post `text/plain` to skip CORS preflight; parse the body ourselves.
            body = await request.body()
            try:
                envelope = json.loads(body or b"{}")
            except ValueError:
                return {"success": False, "message": "Invalid JSON body"}
            if not isinstance(envelope, dict):
                return {"success": False, "message": "Invalid JSON body"}
            return await self.handle_envelope(envelope)

        self.app.add_api_route("/", execute, methods=["POST"])
        self.app.add_api_route("/exec", execute, methods=["POST"])

        @self.app.get("/actions")
        async def list_actions():
            """Supported envelope actions."""
            return {"actions": sorted(self._actions)}

    async def handle_envelope(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        """Dispatch one envelope; failures come back as `{success: false}` results."""
        action = envelope.get("action")
        handler = self._actions.get(action) if isinstance(action, str) else None
        if handler is None:
            return {"success": False, "message": "Unknown action"}

        set_action_context(action, envelope.get("operator") or envelope.get("email"))
        try:
            result = await handler(envelope)
        except PydanticValidationError as exc:
            fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
            result = ValidationError("Missing or invalid fields", details={"fields": fields}).to_result()
            self.metrics.record_error("VALIDATION_ERROR")
        except OpnameError as exc:
            self.logger.info("Action failed", code=exc.code, message=exc.message)
            self.metrics.record_error(exc.code)
            result = exc.to_result()
        except Exception as exc:
            self.logger.error("Unhandled action error", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            result = {"success": False, "message": str(exc)}

        self.metrics.record_action(action, bool(result.get("success")))
        return result

    # ------------------------------------------------------------------
    # Handlers

    async def _login(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = LoginRequest.model_validate(payload)
        user = self.store.find_user(request.email)
        if user and hmac.compare_digest(user.password.encode(), request.password.encode()):
            return {"success": True, "user": user.to_public()}
        return {"success": False, "message": "Invalid email or password"}

    async def _get_products(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = GetProductsRequest.model_validate(payload)
        return await self.queries.get_products(request.locationCode)

    async def _get_history(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = GetHistoryRequest.model_validate(payload)
        return await self.queries.get_history(request.operator, request.filter)

    async def _lookup_barcode(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = LookupBarcodeRequest.model_validate(payload)
        return await self.queries.lookup_barcode(request.barcode)

    async def _search_products(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = SearchRequest.model_validate(payload)
        return await self.queries.search_products(request.query)

    async def _search_locations(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = SearchRequest.model_validate(payload)
        return await self.queries.search_locations(request.query)

    async def _get_all_locations(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.queries.get_all_locations()

    async def _get_all_products(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.queries.get_all_products()

    async def _save_stock_opname(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = SaveStockOpnameRequest.model_validate(payload)
        return await self.coordinator.save_stock_opname(request)

    async def _update_entry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = UpdateEntryRequest.model_validate(payload)
        return await self.coordinator.update_entry(request)

    async def _delete_entry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = DeleteEntryRequest.model_validate(payload)
        return await self.coordinator.delete_entry(request.rowId)

    async def _delete_product(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = DeleteProductRequest.model_validate(payload)
        return await self.coordinator.delete_product(request.locationCode, request.sku)

    async def _add_master_product(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = AddMasterProductRequest.model_validate(payload)
        return await self.coordinator.add_master_product(request)

    async def _warmup_cache(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = WarmupRequest.model_validate(payload)
        summary = await self.warmup.warm(request.locationQuery, request.productQuery)
        return {"success": True, "warmed": summary["warmed"]}

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {"store": f"version {await self.store.version.current()}"}
        if self.redis is not None:
            try:
                await self.redis.ping()
                dependencies["redis"] = "ok"
            except Exception as exc:
                self.logger.warning("Redis health check failed", error=str(exc))
                dependencies["redis"] = "unavailable"
        return dependencies


def create_app(**kwargs) -> FastAPI:
    """Create stock opname service application."""
    service = OpnameService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = OpnameService()
    service.run()
