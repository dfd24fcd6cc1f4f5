"""
Product Domain Model

Represents a product in a tenant's catalog, and its variants.
"""
from datetime import datetime
from decimal import Decimal
from itertools import product as cartesian_product
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.domain.common import to_money

ProductStatus = Literal["draft", "active", "archived"]
StockLevel = Literal["low", "out", "in"]
StockAction = Literal["set", "add", "subtract"]
PriceChangeType = Literal["set", "increase", "decrease", "percentage_increase", "percentage_decrease"]

PRODUCT_STATUSES = ("draft", "active", "archived")


class Product(BaseModel):
    """
    Product domain model - matches the products table

    Fields:
        id: Product ID (uuid)
        tenant_id: Owning store
        name / slug: Display name and URL slug (unique per tenant)
        sku: Stock Keeping Unit (optional)
        price: Selling price
        compare_at_price: Original price shown struck-through when on sale
        cost_price: Purchase/cost price
        quantity: Units on hand (negative allowed for back-orders)
        track_quantity: Whether stock is tracked at all
        low_stock_threshold: Alert threshold
        status: draft, active or archived
        category_id: Category the product belongs to
        collection_ids: Collections the product is listed in (when loaded)
        images: Ordered image URLs
    """

    id: str = Field(..., description="Product ID")
    tenant_id: str = Field(..., description="Owning tenant")
    name: str = Field(..., description="Product name")
    slug: str = Field(..., description="URL slug")
    sku: Optional[str] = Field(None, description="Stock Keeping Unit")
    description: Optional[str] = Field(None, description="Product description")

    price: Decimal = Field(Decimal("0"), description="Selling price", ge=0)
    compare_at_price: Optional[Decimal] = Field(None, description="Compare-at price", ge=0)
    cost_price: Optional[Decimal] = Field(None, description="Cost price", ge=0)

    quantity: int = Field(0, description="Units on hand (can be negative for back-orders)")
    track_quantity: bool = Field(True, description="Whether stock is tracked")
    low_stock_threshold: int = Field(5, description="Low stock alert threshold", ge=0)

    status: ProductStatus = Field("draft", description="Publication status")
    category_id: Optional[str] = Field(None, description="Category ID")
    collection_ids: List[str] = Field(default_factory=list, description="Collection IDs")
    images: List[str] = Field(default_factory=list, description="Image URLs")

    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_low_stock(self) -> bool:
        """Stock at or below threshold but not out"""
        return self.track_quantity and 0 < self.quantity <= self.low_stock_threshold

    @property
    def is_out_of_stock(self) -> bool:
        return self.track_quantity and self.quantity <= 0

    @property
    def is_on_sale(self) -> bool:
        return self.compare_at_price is not None and self.compare_at_price > self.price

    @property
    def primary_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def to_dict(self) -> dict:
        """Serializable dict including computed properties"""
        data = self.model_dump(mode="json")
        data["is_low_stock"] = self.is_low_stock
        data["is_out_of_stock"] = self.is_out_of_stock
        data["is_on_sale"] = self.is_on_sale
        return data


class ProductCreate(BaseModel):
    """Schema for creating a new product"""
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    price: Decimal = Field(Decimal("0"), ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = 0
    track_quantity: bool = True
    low_stock_threshold: int = Field(5, ge=0)
    status: ProductStatus = "draft"
    category_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    """Schema for updating an existing product"""
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = None
    track_quantity: Optional[bool] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    category_id: Optional[str] = None
    images: Optional[List[str]] = None


class ProductVariant(BaseModel):
    id: str
    product_id: str
    title: str
    sku: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = 0
    options: Dict[str, str] = Field(default_factory=dict)
    position: int = 0

    model_config = ConfigDict(from_attributes=True)


class ProductVariantCreate(BaseModel):
    title: str = Field(..., min_length=1)
    sku: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = 0
    options: Dict[str, str] = Field(default_factory=dict)


class ProductVariantUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    options: Optional[Dict[str, str]] = None


class StockAdjustment(BaseModel):
    """set replaces the on-hand count; subtract never goes below zero"""
    quantity: int = Field(..., ge=0)
    action: StockAction = "set"


class VariantStockUpdate(StockAdjustment):
    variant_id: str


class OptionGroup(BaseModel):
    """A product option such as Size with its values"""
    name: str = Field(..., min_length=1)
    values: List[str] = Field(..., min_length=1)


def generate_variants(option_groups: List[OptionGroup]) -> List[ProductVariantCreate]:
    """
    Cartesian product of option values as variant drafts

    >>> [v.title for v in generate_variants([OptionGroup(name="Size", values=["S", "M"]),
    ...                                      OptionGroup(name="Color", values=["Red"])])]
    ['S / Red', 'M / Red']
    """
    if not option_groups:
        return []

    names = [group.name for group in option_groups]
    variants = []
    for combination in cartesian_product(*(group.values for group in option_groups)):
        variants.append(ProductVariantCreate(
            title=" / ".join(combination),
            options=dict(zip(names, combination)),
        ))
    return variants


class Category(BaseModel):
    id: str
    tenant_id: str
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    product_count: int = 0

    model_config = ConfigDict(from_attributes=True)


def apply_price_change(price: Decimal, change_type: str, value: Decimal) -> Decimal:
    """
    New price after a bulk price change, rounded to cents and never negative

    >>> apply_price_change(Decimal("20.00"), "percentage_increase", Decimal("10"))
    Decimal('22.00')
    """
    price = Decimal(price)
    value = Decimal(value)

    if change_type == "set":
        new_price = value
    elif change_type == "increase":
        new_price = price + value
    elif change_type == "decrease":
        new_price = price - value
    elif change_type == "percentage_increase":
        new_price = price * (1 + value / 100)
    elif change_type == "percentage_decrease":
        new_price = price * (1 - value / 100)
    else:
        raise ValueError(f"Invalid price change type: {change_type}")

    return max(to_money(new_price), Decimal("0.00"))
