"""
Bulk Action Domain Models
"""
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from storefront.domain.product import PriceChangeType, VariantStockUpdate

BulkEntityType = Literal["products", "orders", "customers"]
ExportFormat = Literal["csv", "json", "xlsx"]


class BulkActionError(BaseModel):
    item_id: str
    message: str
    code: Optional[str] = None


class BulkActionResult(BaseModel):
    success: bool
    success_count: int
    failed_count: int
    total_count: int
    errors: List[BulkActionError] = Field(default_factory=list)
    message: str


class BulkIdsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class BulkStatusRequest(BulkIdsRequest):
    status: str


class BulkExportRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)
    format: ExportFormat = "csv"


class BulkCategoryRequest(BulkIdsRequest):
    category_id: Optional[str] = Field(None, description="None removes the category")


class BulkPriceRequest(BulkIdsRequest):
    type: PriceChangeType
    value: Decimal = Field(..., ge=0)


class BulkTagRequest(BulkIdsRequest):
    tag: str = Field(..., min_length=1, max_length=50)


class BulkStockRequest(BaseModel):
    updates: List[VariantStockUpdate] = Field(..., min_length=1)
