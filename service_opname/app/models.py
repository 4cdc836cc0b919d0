"""
Request payload models for the action envelope.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CountItem(BaseModel):
    """One counted product in a submitted batch."""
    productName: str = Field(..., min_length=1, description="Product name")
    sku: str = Field(..., min_length=1, description="Stock keeping unit")
    batch: str = Field("", description="Batch / lot code")
    qty: int = Field(..., ge=0, description="Counted quantity")
    isNew: bool = Field(False, description="Product was added on the device")
    barcode: str = Field("", description="Barcode, if known")
    formula: str = Field("", description="Expression the quantity was entered as, e.g. 10+5=15")


class SaveStockOpnameRequest(BaseModel):
    operator: str = Field(..., min_length=1, description="Operator email")
    location: str = Field(..., min_length=1, description="Location code")
    timestamp: Optional[str] = Field(None, description="ISO timestamp from the device")
    items: List[CountItem] = Field(..., min_length=1)


class UpdateEntryRequest(BaseModel):
    rowId: str = Field(..., min_length=1)
    newQty: int = Field(..., ge=0)
    editTimestamp: Optional[str] = None
    productName: Optional[str] = None
    sku: Optional[str] = None
    batch: Optional[str] = None
    formula: Optional[str] = None


class DeleteEntryRequest(BaseModel):
    rowId: str = Field(..., min_length=1)


class DeleteProductRequest(BaseModel):
    locationCode: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)


class AddMasterProductRequest(BaseModel):
    locationCode: str = Field(..., min_length=1)
    productName: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    batch: str = ""
    barcode: str = ""


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class GetProductsRequest(BaseModel):
    locationCode: str = Field(..., min_length=1)


class GetHistoryRequest(BaseModel):
    operator: str = Field(..., min_length=1)
    filter: Optional[str] = None


class LookupBarcodeRequest(BaseModel):
    barcode: str = Field(..., min_length=1)


class SearchRequest(BaseModel):
    query: str = ""


class WarmupRequest(BaseModel):
    locationQuery: Optional[str] = None
    productQuery: Optional[str] = None
