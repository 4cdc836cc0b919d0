"""
Test helper functions and factory methods for the Stock Opname sync layer.
"""

from typing import Any, Dict, List, Optional

from service_opname.app.store import CatalogRow, CountLogRow, SheetStore, UserRow


class TestDataFactory:
    """Factory for creating test data."""

    __test__ = False

    @staticmethod
    def create_test_users() -> List[UserRow]:
        """Create test users."""
        return [
            UserRow(email="ani@gudang.id", name="Ani Wijaya", password="rahasia"),
            UserRow(email="budi@gudang.id", name="Budi Santoso", password="gudang123"),
            UserRow(email="admin@gudang.id", name="Admin", password="admin", role="admin"),
        ]

    @staticmethod
    def create_test_catalog() -> List[CatalogRow]:
        """Create catalog rows spread over three locations."""
        return [
            CatalogRow("RAK-A1", "Indomie Goreng", "SKU-001", "B1", "8991001"),
            CatalogRow("RAK-A1", "Teh Botol", "SKU-002", "B2", "8991002"),
            CatalogRow("RAK-B2", "Indomie Goreng", "SKU-001", "B3", ""),
            CatalogRow("RAK-B2", "Kopi Kapal Api", "SKU-003", "B1", "8991003"),
            CatalogRow("GUDANG-C3", "Minyak Goreng", "SKU-004", "B7", "8991004"),
        ]

    @staticmethod
    def create_test_count_log() -> List[CountLogRow]:
        """Create one historic count row for Ani at RAK-A1."""
        return [
            CountLogRow(
                sessionId="SO-AAA001",
                rowId="R-AAA001",
                timestamp="01 Jan 2024 09:00",
                operator="Ani",
                location="RAK-A1",
                productName="Indomie Goreng",
                sku="SKU-001",
                batch="B1",
                qty=10,
            ),
        ]

    @classmethod
    def create_seed_store(cls, **kwargs) -> SheetStore:
        """Store populated with the default test users, catalog and count log."""
        return SheetStore(
            catalog=cls.create_test_catalog(),
            count_log=cls.create_test_count_log(),
            users=cls.create_test_users(),
            **kwargs,
        )

    @classmethod
    def create_seed_payload(cls) -> Dict[str, Any]:
        """Seed file contents in the on-disk row format."""
        return {
            "catalog": [row.as_row() for row in cls.create_test_catalog()],
            "count_log": [row.as_row() for row in cls.create_test_count_log()],
            "users": [
                {"email": user.email, "name": user.name, "password": user.password, "role": user.role}
                for user in cls.create_test_users()
            ],
        }

    @staticmethod
    def create_count_items(*skus: str, qty: int = 5) -> List[Dict[str, Any]]:
        """Count items in the saveStockOpname wire format."""
        return [
            {"productName": f"Product {sku}", "sku": sku, "batch": "B1", "qty": qty}
            for sku in skus
        ]


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.versions = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def record_version(self, version: int):
        self.versions.append(version)

    def count(self, metric_name: str, **labels) -> int:
        return sum(
            1 for name, recorded in self.counters
            if name == metric_name and all(recorded.get(k) == v for k, v in labels.items())
        )


class TestEnvironment:
    """Test environment configuration."""

    __test__ = False

    @staticmethod
    def get_mock_config(**overrides) -> Dict[str, Any]:
        """Service config overrides for in-process tests."""
        config: Dict[str, Any] = {
            "env": "test",
            "log_level": "warning",
            "cache_enabled": False,
            "lock_timeout_seconds": 0.05,
        }
        config.update(overrides)
        return config

    @staticmethod
    def get_api_url(base: Optional[str] = None) -> str:
        return (base or "http://testserver") + "/exec"
