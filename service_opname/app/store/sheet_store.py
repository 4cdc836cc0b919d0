"""
Tabular store holding the catalog ("Master Data"), the count log
("Stock Opname Results") and the user sheet.

The store owns its version counter. Mutating helpers are plain synchronous
methods: callers must hold the store lock (see MutationCoordinator) and bump
the version themselves once the whole mutation is applied.
"""

from __future__ import annotations

import json
import random
import string
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from shared.logging import get_logger
from .models import CatalogRow, CountLogRow, UserRow
from .version import LocalVersionCounter


TIMESTAMP_FORMAT = "%d %b %Y %H:%M"
ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_short_id(prefix: str, length: int = 6, rng: Optional[random.Random] = None) -> str:
    """Short random identifier such as `SO-A3K9X2`."""
    chooser = rng or random
    return prefix + "".join(chooser.choice(ID_ALPHABET) for _ in range(length))


class SheetStore:
    """In-memory rendition of the shared spreadsheet backend."""

    def __init__(
        self,
        *,
        catalog: Optional[Iterable[CatalogRow]] = None,
        count_log: Optional[Iterable[CountLogRow]] = None,
        users: Optional[Iterable[UserRow]] = None,
        version_counter=None,
        timezone: str = "Asia/Jakarta",
        rng: Optional[random.Random] = None,
    ):
        self.catalog: List[CatalogRow] = list(catalog or [])
        self.count_log: List[CountLogRow] = list(count_log or [])
        self.users: List[UserRow] = list(users or [])
        self.version = version_counter or LocalVersionCounter()
        self.tz = ZoneInfo(timezone)
        self._rng = rng or random.Random()
        self.logger = get_logger("opname.store")

    @classmethod
    def from_seed_file(cls, path: Optional[Union[str, Path]], **kwargs) -> "SheetStore":
        """Build a store from a JSON seed. Missing or malformed files yield an empty store."""
        payload = cls._load_seed(Path(path)) if path else {}
        return cls(
            catalog=[CatalogRow.from_row(row) for row in payload.get("catalog", [])],
            count_log=[CountLogRow.from_row(row) for row in payload.get("count_log", [])],
            users=[UserRow(**user) for user in payload.get("users", [])],
            **kwargs,
        )

    @staticmethod
    def _load_seed(path: Path) -> Dict[str, Any]:
        logger = get_logger("opname.store")
        if not path.exists():
            logger.warning("Seed file not found; starting with an empty store", path=str(path))
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (ValueError, OSError) as exc:
            logger.error("Failed to parse seed file; starting with an empty store", path=str(path), error=str(exc))
            return {}

    # ------------------------------------------------------------------
    # Formatting helpers

    def format_timestamp(self, value: Optional[str]) -> str:
        """Render an ISO timestamp (or now) as `dd MMM yyyy HH:mm` in the store timezone."""
        moment = self._parse_iso(value) if value else None
        if moment is None:
            moment = datetime.now(self.tz)
        return moment.astimezone(self.tz).strftime(TIMESTAMP_FORMAT)

    def parse_log_timestamp(self, value: str) -> Optional[datetime]:
        try:
            return datetime.strptime(str(value).strip(), TIMESTAMP_FORMAT).replace(tzinfo=self.tz)
        except ValueError:
            return self._parse_iso(value)

    def _parse_iso(self, value: str) -> Optional[datetime]:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        return moment

    def now(self) -> datetime:
        return datetime.now(self.tz)

    # ------------------------------------------------------------------
    # Users

    def find_user(self, email: str) -> Optional[UserRow]:
        for user in self.users:
            if user.email == email:
                return user
        return None

    def operator_name(self, email: str) -> str:
        """First name stored in the count log for an operator email."""
        user = self.find_user(email)
        return user.first_name if user else email

    # ------------------------------------------------------------------
    # Catalog

    def find_catalog_row(self, location: str, sku: str) -> Optional[CatalogRow]:
        for row in self.catalog:
            if row.location == location and row.sku == sku:
                return row
        return None

    def catalog_for_location(self, location: str) -> List[CatalogRow]:
        return [row for row in self.catalog if row.location == location]

    def insert_catalog_row(self, row: CatalogRow) -> bool:
        """Append a catalog row unless its (location, sku) is already present."""
        if self.find_catalog_row(row.location, row.sku) is not None:
            return False
        self.catalog.append(row)
        return True

    def remove_catalog_row(self, location: str, sku: str) -> bool:
        # Scan from the bottom so the most recently added duplicate goes first.
        for index in range(len(self.catalog) - 1, -1, -1):
            row = self.catalog[index]
            if row.location == location and row.sku == sku:
                del self.catalog[index]
                return True
        return False

    # ------------------------------------------------------------------
    # Count log

    def find_entry(self, row_id: str) -> Optional[CountLogRow]:
        for row in self.count_log:
            if row.rowId == row_id:
                return row
        return None

    def new_session_id(self) -> str:
        return generate_short_id("SO-", rng=self._rng)

    def new_row_id(self, taken: Optional[set] = None) -> str:
        """Row id unique across the whole count log (and `taken`)."""
        existing = {row.rowId for row in self.count_log}
        if taken:
            existing |= taken
        while True:
            candidate = generate_short_id("R-", rng=self._rng)
            if candidate not in existing:
                return candidate

    def append_entries(self, rows: List[CountLogRow]) -> None:
        self.count_log.extend(rows)

    def remove_entry(self, row_id: str) -> Optional[CountLogRow]:
        for index, row in enumerate(self.count_log):
            if row.rowId == row_id:
                return self.count_log.pop(index)
        return None

    def history_for(self, operator_name: str, period: Optional[str]) -> List[CountLogRow]:
        """Operator's rows within `today`, `week`, `month` (anything else means all)."""
        now = self.now()
        cutoff: Optional[datetime] = None
        if period == "week":
            cutoff = now - timedelta(days=7)
        elif period == "month":
            cutoff = now - timedelta(days=30)

        rows = []
        for row in self.count_log:
            if row.operator != operator_name:
                continue
            moment = self.parse_log_timestamp(row.timestamp)
            # Rows with an unreadable timestamp are always included.
            if moment is not None:
                if period == "today" and moment.astimezone(self.tz).date() != now.date():
                    continue
                if cutoff is not None and moment < cutoff:
                    continue
            rows.append(row)
        return rows
