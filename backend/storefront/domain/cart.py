"""
Cart Domain Model

Shopping carts and their line items. Totals always satisfy:

    subtotal = sum(unit_price * quantity)
    total    = subtotal - discount_total + shipping_total + tax_total
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.domain.common import to_money

CartStatus = Literal["active", "completed", "abandoned"]


class CartItem(BaseModel):
    id: str
    product_id: str
    variant_id: Optional[str] = None
    product_name: str
    product_sku: Optional[str] = None
    product_image: Optional[str] = None
    unit_price: Decimal = Field(..., ge=0)
    compare_at_price: Optional[Decimal] = None
    quantity: int = Field(..., ge=1)
    category_ids: List[str] = Field(default_factory=list)
    collection_ids: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


class Cart(BaseModel):
    id: str
    tenant_id: str
    customer_id: Optional[str] = None
    email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    status: CartStatus = "active"
    currency: str = "USD"

    subtotal: Decimal = Decimal("0.00")
    discount_total: Decimal = Decimal("0.00")
    shipping_total: Decimal = Decimal("0.00")
    tax_total: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_area: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = None
    billing_address: Optional[str] = None

    discount_id: Optional[str] = None
    voucher_code_id: Optional[str] = None
    voucher_code: Optional[str] = None

    items: List[CartItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["item_count"] = self.item_count
        for raw, item in zip(data["items"], self.items):
            raw["line_total"] = str(item.line_total)
        return data


class CartTotals(BaseModel):
    subtotal: Decimal
    discount_total: Decimal
    shipping_total: Decimal
    tax_total: Decimal
    total: Decimal


def calculate_totals(
    items: List[CartItem],
    discount_total=0,
    shipping_total=0,
    tax_total=0,
) -> CartTotals:
    """
    Recompute cart totals from line items

    The discount is clamped to [0, subtotal] so a cart total never goes below
    shipping + tax.
    """
    subtotal = to_money(sum((item.unit_price * item.quantity for item in items), Decimal("0")))
    discount = min(max(to_money(discount_total), Decimal("0.00")), subtotal)
    shipping = max(to_money(shipping_total), Decimal("0.00"))
    tax = max(to_money(tax_total), Decimal("0.00"))

    return CartTotals(
        subtotal=subtotal,
        discount_total=discount,
        shipping_total=shipping,
        tax_total=tax,
        total=to_money(subtotal - discount + shipping + tax),
    )


class CartCreate(BaseModel):
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    email: Optional[EmailStr] = None


class CartItemCreate(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(1, ge=1, le=999)


class CartItemQuantity(BaseModel):
    quantity: int = Field(..., ge=0, le=999)


class CartUpdate(BaseModel):
    email: Optional[EmailStr] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_area: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = None
    billing_address: Optional[str] = None
    status: Optional[CartStatus] = None


class CheckoutRequest(BaseModel):
    """Customer info submitted with checkout; every field optional"""
    cart_id: Optional[str] = None
    email: Optional[EmailStr] = None
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = Field(None, min_length=5)
    shipping_city: Optional[str] = Field(None, min_length=2)
    shipping_area: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = Field(None, min_length=2)
