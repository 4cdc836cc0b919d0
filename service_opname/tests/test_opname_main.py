"""
Unit tests for the Stock Opname service envelope endpoint.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from service_opname.app.main import OpnameService, create_app
from service_opname.app.store import LocalStoreLock
from shared.config import get_config
from shared.errors import LockTimeoutError
from shared.test_helpers import TestDataFactory, TestEnvironment


class TestOpnameService:
    """Test cases for OpnameService."""

    @pytest.fixture
    def service(self):
        """Service over the seed store with the read cache disabled."""
        config = get_config("opname", 8020, **TestEnvironment.get_mock_config())
        return OpnameService(config, store=TestDataFactory.create_seed_store())

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        with TestClient(service.app) as client:
            yield client

    def post(self, client, envelope, path="/exec"):
        response = client.post(path, content=json.dumps(envelope), headers={"Content-Type": "text/plain"})
        assert response.status_code == 200
        return response.json()

    def test_create_app(self):
        app = create_app(config=get_config("opname", 8020, **TestEnvironment.get_mock_config()))
        assert app.title == "Opname Service"

    def test_store_lock_and_cache_follow_the_in_process_store(self, service):
        """Without the read cache no Redis client is built; the lock is in-process."""
        assert isinstance(service.lock, LocalStoreLock)
        assert service.redis is None
        assert service.cache.epoch == service.store.version.epoch

    def test_unknown_action(self, client):
        assert self.post(client, {"action": "dropTables"}) == {"success": False, "message": "Unknown action"}
        assert self.post(client, {"operator": "ani@gudang.id"}) == {"success": False, "message": "Unknown action"}

    def test_invalid_json_body(self, client):
        response = client.post("/", content="{oops", headers={"Content-Type": "text/plain"})
        assert response.json() == {"success": False, "message": "Invalid JSON body"}

    def test_login(self, client):
        result = self.post(client, {"action": "login", "email": "ani@gudang.id", "password": "rahasia"})
        assert result == {"success": True, "user": {"email": "ani@gudang.id", "name": "Ani Wijaya", "role": "operator"}}

        rejected = self.post(client, {"action": "login", "email": "ani@gudang.id", "password": "salah"})
        assert rejected == {"success": False, "message": "Invalid email or password"}

    def test_get_products(self, client):
        result = self.post(client, {"action": "getProducts", "locationCode": "RAK-A1"})
        assert [product["sku"] for product in result["products"]] == ["SKU-001", "SKU-002"]

        missing = self.post(client, {"action": "getProducts", "locationCode": "RAK-Z9"})
        assert missing == {"success": False, "message": "Location not found"}

    def test_save_then_history(self, client):
        saved = self.post(client, {
            "action": "saveStockOpname",
            "operator": "budi@gudang.id",
            "location": "RAK-B2",
            "items": TestDataFactory.create_count_items("SKU-003", "SKU-050", qty=7),
        })
        assert saved["success"] is True
        assert saved["catalogAdded"] == 1

        history = self.post(client, {"action": "getHistory", "operator": "budi@gudang.id", "filter": "today"})
        assert sorted(entry["rowId"] for entry in history["history"]) == sorted(saved["rowIds"])
        assert {entry["operator"] for entry in history["history"]} == {"Budi"}

    def test_missing_fields_are_validation_errors(self, client):
        result = self.post(client, {"action": "saveStockOpname", "operator": "ani@gudang.id", "location": "RAK-A1"})

        assert result["success"] is False
        assert result["code"] == "VALIDATION_ERROR"
        assert "items" in result["details"]["fields"]

    def test_delete_missing_entry(self, client):
        result = self.post(client, {"action": "deleteEntry", "rowId": "R-NOPE01"})

        assert result["success"] is False
        assert result["code"] == "NOT_FOUND"
        assert result["retryable"] is False

    def test_busy_store_is_retryable(self, client, service):
        with patch.object(service.coordinator, "delete_product", new_callable=AsyncMock) as mock_delete:
            mock_delete.side_effect = LockTimeoutError()
            result = self.post(client, {"action": "deleteProduct", "locationCode": "RAK-A1", "sku": "SKU-002"})

        assert result["success"] is False
        assert result["code"] == "LOCK_TIMEOUT"
        assert result["retryable"] is True
        assert result["message"] == "Server is busy, please retry"

    def test_search_and_lookup(self, client):
        products = self.post(client, {"action": "searchProducts", "query": "indo"})
        assert [product["sku"] for product in products["products"]] == ["SKU-001"]

        locations = self.post(client, {"action": "searchLocations", "query": "rak"})
        assert locations["locations"] == [
            {"locationCode": "RAK-A1", "productCount": 2},
            {"locationCode": "RAK-B2", "productCount": 2},
        ]

        found = self.post(client, {"action": "lookupBarcode", "barcode": "8991003"})
        assert found["product"]["productName"] == "Kopi Kapal Api"

    def test_warmup_cache(self, client):
        result = self.post(client, {"action": "warmupCache", "locationQuery": "rak"})
        assert result["success"] is True
        assert result["warmed"]["locations"] == 3

    def test_actions_and_health(self, client):
        actions = client.get("/actions").json()["actions"]
        assert "warmupCache" in actions
        assert "addMasterProduct" in actions

        health = client.get("/health").json()
        assert health["service"] == "opname"
        assert health["dependencies"] == {"store": "version 0"}

    def test_metrics_endpoint(self, client):
        self.post(client, {"action": "getAllLocations"})

        body = client.get("/metrics").text
        assert "actions_total" in body
        assert 'action="getAllLocations"' in body
