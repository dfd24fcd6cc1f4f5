"""
Order Domain Models

Orders, their line items, and the order status state machine.
"""
import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

OrderStatus = Literal[
    "draft", "unconfirmed", "pending", "confirmed", "processing", "shipped",
    "delivered", "completed", "cancelled", "returned", "refunded",
]
PaymentStatus = Literal["pending", "paid", "partially_refunded", "refunded", "failed"]
FulfillmentStatus = Literal["unfulfilled", "partially_fulfilled", "fulfilled"]

# Allowed order status transitions; terminal states map to an empty list
ORDER_STATUS_TRANSITIONS: Dict[str, List[str]] = {
    "draft": ["unconfirmed", "pending", "cancelled"],
    "unconfirmed": ["pending", "confirmed", "cancelled"],
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["processing", "cancelled"],
    "processing": ["shipped", "cancelled"],
    "shipped": ["delivered", "returned"],
    "delivered": ["completed", "returned"],
    "completed": ["returned"],
    "cancelled": [],
    "returned": ["refunded"],
    "refunded": [],
}

_BASE36 = string.digits + string.ascii_uppercase


def can_transition(current: str, new: str) -> bool:
    return new in ORDER_STATUS_TRANSITIONS.get(current, [])


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """ORD-<base36 millisecond timestamp>-<4 random base36 chars>"""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"ORD-{timestamp}-{random_part}"


class OrderItem(BaseModel):
    id: Optional[str] = None
    order_id: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_name: str
    product_sku: Optional[str] = None
    product_image: Optional[str] = None
    variant_title: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit_price: Decimal
    total_price: Decimal
    quantity_fulfilled: int = 0
    discount_amount: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    """
    Order domain model

    Money fields are stored with two decimals; `items` is only populated
    by the repository methods that load them.
    """
    id: str
    tenant_id: str
    customer_id: Optional[str] = None
    order_number: str
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    fulfillment_status: FulfillmentStatus = "unfulfilled"

    subtotal: Decimal = Decimal("0.00")
    discount_total: Decimal = Decimal("0.00")
    shipping_total: Decimal = Decimal("0.00")
    tax_total: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    currency: str = "USD"
    items_count: int = 0

    shipping_address: Optional[Dict[str, Any]] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_note: Optional[str] = None

    discount_id: Optional[str] = None
    voucher_code_id: Optional[str] = None
    discount_code: Optional[str] = None
    cart_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None

    items: List[OrderItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def allowed_transitions(self) -> List[str]:
        return ORDER_STATUS_TRANSITIONS.get(self.status, [])

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["allowed_transitions"] = self.allowed_transitions
        return data


class OrderCreate(BaseModel):
    order_number: str
    customer_id: Optional[str] = None
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    subtotal: Decimal
    discount_total: Decimal = Decimal("0.00")
    shipping_total: Decimal = Decimal("0.00")
    tax_total: Decimal = Decimal("0.00")
    total: Decimal
    currency: str = "USD"
    items_count: int = 0
    shipping_address: Optional[Dict[str, Any]] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    discount_id: Optional[str] = None
    voucher_code_id: Optional[str] = None
    discount_code: Optional[str] = None
    cart_id: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class OrderStats(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    revenue: Decimal = Decimal("0.00")
    paid_orders: int = 0
    unpaid_count: int = 0
    today_count: int = 0
    today_revenue: Decimal = Decimal("0.00")


class OrderNote(BaseModel):
    note: str = Field(..., min_length=1, max_length=2000)


class FulfillmentStatusUpdate(BaseModel):
    fulfillment_status: FulfillmentStatus
