"""
Row models for the Stock Opname store.

Rows mirror the shared spreadsheet columns: their field order is the wire
order used by `as_row()` / `from_row()`.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List


@dataclass
class CatalogRow:
    """Master-data row: one product stocked at one location."""
    location: str
    productName: str
    sku: str
    batch: str
    barcode: str = ""

    def to_product(self) -> Dict[str, Any]:
        """Product view without the location column."""
        return {
            "productName": self.productName,
            "sku": self.sku,
            "batch": self.batch,
            "barcode": self.barcode or "",
        }

    def as_row(self) -> List[Any]:
        return [getattr(self, f.name) for f in fields(self)]

    @classmethod
    def from_row(cls, row: List[Any]) -> "CatalogRow":
        padded = list(row) + [""] * (5 - len(row))
        return cls(*[str(value).strip() if value is not None else "" for value in padded[:5]])


@dataclass
class CountLogRow:
    """One counted line of a submitted stock opname batch."""
    sessionId: str
    rowId: str
    timestamp: str
    operator: str
    location: str
    productName: str
    sku: str
    batch: str
    qty: int
    edited: str = "No"
    editTimestamp: str = ""
    formula: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def as_row(self) -> List[Any]:
        return [getattr(self, f.name) for f in fields(self)]

    @classmethod
    def from_row(cls, row: List[Any]) -> "CountLogRow":
        padded = list(row) + [""] * (12 - len(row))
        values = [str(value) if value is not None else "" for value in padded[:12]]
        values[8] = int(float(values[8] or 0))
        values[9] = values[9] or "No"
        return cls(*values)


@dataclass
class UserRow:
    """Login account; `name` is the display name written to the count log."""
    email: str
    name: str
    password: str
    role: str = "operator"

    @property
    def first_name(self) -> str:
        return self.name.strip().split(" ")[0] if self.name.strip() else self.email

    def to_public(self) -> Dict[str, Any]:
        return {"email": self.email, "name": self.name, "role": self.role}
