"""
Store package: tabular data, the store-owned version token and the
store-wide mutation lock.
"""

from .models import CatalogRow, CountLogRow, UserRow
from .sheet_store import SheetStore
from .lock import LocalStoreLock
from .version import LocalVersionCounter

__all__ = [
    "CatalogRow",
    "CountLogRow",
    "UserRow",
    "SheetStore",
    "LocalStoreLock",
    "LocalVersionCounter",
]
