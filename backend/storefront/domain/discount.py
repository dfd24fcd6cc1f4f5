"""
Discount Domain Models

Sales (automatic, product-level) and vouchers (code based, order-level),
plus the individual voucher codes and usage records.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DiscountKind = Literal["sale", "voucher"]
DiscountType = Literal["percentage", "fixed", "free_shipping"]
DiscountScope = Literal["entire_order", "specific_products", "shipping"]
DiscountStatus = Literal["active", "inactive", "expired", "scheduled"]
VoucherCodeStatus = Literal["active", "used", "expired", "disabled"]


class Discount(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    kind: DiscountKind = "voucher"
    type: DiscountType = "percentage"
    value: Decimal = Decimal("0")
    scope: DiscountScope = "entire_order"

    apply_once_per_order: bool = False
    min_order_amount: Optional[Decimal] = None
    min_checkout_items_quantity: Optional[int] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    apply_once_per_customer: bool = False
    only_for_staff: bool = False
    single_use: bool = False

    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True

    applicable_product_ids: List[str] = Field(default_factory=list)
    applicable_collection_ids: List[str] = Field(default_factory=list)
    applicable_category_ids: List[str] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _null_lists(cls, data):
        # JSONB columns come back as None when unset
        if isinstance(data, dict):
            for key in ("applicable_product_ids", "applicable_collection_ids", "applicable_category_ids"):
                if data.get(key) is None:
                    data[key] = []
        return data


class DiscountInput(BaseModel):
    """Create/update payload for vouchers and sales (validated by discount_service)"""
    name: str = ""
    description: Optional[str] = None
    type: DiscountType = "percentage"
    value: Decimal = Decimal("0")
    scope: DiscountScope = "entire_order"
    apply_once_per_order: bool = False
    min_order_amount: Optional[Decimal] = None
    min_checkout_items_quantity: Optional[int] = None
    usage_limit: Optional[int] = None
    apply_once_per_customer: bool = False
    only_for_staff: bool = False
    single_use: bool = False
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: bool = True
    applicable_product_ids: List[str] = Field(default_factory=list)
    applicable_collection_ids: List[str] = Field(default_factory=list)
    applicable_category_ids: List[str] = Field(default_factory=list)


class VoucherCode(BaseModel):
    id: str
    tenant_id: str
    discount_id: str
    code: str
    status: VoucherCodeStatus = "active"
    used_count: int = 0
    usage_limit: Optional[int] = None
    is_manually_created: bool = False
    created_at: Optional[datetime] = None
    used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VoucherCodesRequest(BaseModel):
    """Generate `quantity` codes and/or add explicit `codes`"""
    quantity: int = Field(0, ge=0, le=1000)
    prefix: Optional[str] = Field(None, max_length=20)
    codes: List[str] = Field(default_factory=list)
    usage_limit: Optional[int] = Field(None, ge=1)


class DiscountLineItem(BaseModel):
    """Cart line as seen by discount calculation"""
    product_id: str
    variant_id: Optional[str] = None
    price: Decimal
    quantity: int
    category_ids: List[str] = Field(default_factory=list)
    collection_ids: List[str] = Field(default_factory=list)


class ApplyDiscountResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    discount_id: Optional[str] = None
    voucher_code_id: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None


class SaleMatch(BaseModel):
    sale_id: str
    type: DiscountType
    value: Decimal
