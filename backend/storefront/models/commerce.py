"""
Carts and orders
"""
from sqlalchemy import (
    DECIMAL, Column, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from storefront.core.database import Base
from storefront.models._columns import created_at, tenant_fk, updated_at, uuid_pk


def _money(nullable=False):
    return Column(DECIMAL(12, 2), nullable=nullable, default=0)


class Cart(Base):
    __tablename__ = "carts"

    id = uuid_pk()
    tenant_id = tenant_fk()
    customer_id = Column(UUID(as_uuid=False), ForeignKey("customers.id", ondelete="SET NULL"))
    email = Column(String(255))
    customer_name = Column(String(255))
    customer_phone = Column(String(50))
    status = Column(String(20), default="active", index=True)
    currency = Column(String(3), default="USD")

    subtotal = _money()
    discount_total = _money()
    shipping_total = _money()
    tax_total = _money()
    total = _money()

    shipping_address = Column(Text)
    shipping_city = Column(String(100))
    shipping_area = Column(String(100))
    shipping_postal_code = Column(String(20))
    shipping_country = Column(String(100))
    billing_address = Column(Text)

    discount_id = Column(UUID(as_uuid=False), ForeignKey("discounts.id", ondelete="SET NULL"))
    voucher_code_id = Column(UUID(as_uuid=False), ForeignKey("voucher_codes.id", ondelete="SET NULL"))
    voucher_code = Column(String(100))

    created_at = created_at()
    updated_at = updated_at()

    items = relationship("CartItem", cascade="all, delete-orphan")


class CartItem(Base):
    __tablename__ = "cart_items"

    id = uuid_pk()
    cart_id = Column(UUID(as_uuid=False), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=False), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(UUID(as_uuid=False), ForeignKey("product_variants.id", ondelete="SET NULL"))
    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(100))
    product_image = Column(Text)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    compare_at_price = Column(DECIMAL(12, 2))
    quantity = Column(Integer, nullable=False, default=1)

    created_at = created_at()
    updated_at = updated_at()


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    customer_id = Column(UUID(as_uuid=False), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    cart_id = Column(UUID(as_uuid=False), ForeignKey("carts.id", ondelete="SET NULL"))
    order_number = Column(String(50), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(30), nullable=False, default="pending", index=True)
    fulfillment_status = Column(String(30), nullable=False, default="unfulfilled")

    subtotal = _money()
    discount_total = _money()
    shipping_total = _money()
    tax_total = _money()
    total = _money()
    currency = Column(String(3), default="USD")
    items_count = Column(Integer, default=0)

    shipping_address = Column(JSONB)
    customer_email = Column(String(255))
    customer_name = Column(String(255))
    customer_note = Column(Text)

    discount_id = Column(UUID(as_uuid=False), ForeignKey("discounts.id", ondelete="SET NULL"))
    voucher_code_id = Column(UUID(as_uuid=False), ForeignKey("voucher_codes.id", ondelete="SET NULL"))
    discount_code = Column(String(100))
    stripe_payment_intent_id = Column(String(255), index=True)

    created_at = created_at()
    updated_at = updated_at()

    items = relationship("OrderItem", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = uuid_pk()
    order_id = Column(UUID(as_uuid=False), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=False), ForeignKey("products.id", ondelete="SET NULL"))
    variant_id = Column(UUID(as_uuid=False), ForeignKey("product_variants.id", ondelete="SET NULL"))
    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(100))
    product_image = Column(Text)
    variant_title = Column(String(255))
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    total_price = Column(DECIMAL(12, 2), nullable=False)
    quantity_fulfilled = Column(Integer, default=0)
    discount_amount = Column(DECIMAL(12, 2))

    created_at = created_at()


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = uuid_pk()
    order_id = Column(UUID(as_uuid=False), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String(20))
    to_status = Column(String(20), nullable=False)
    note = Column(Text)
    changed_by = Column(String(255))
    created_at = created_at()


class OrderEvent(Base):
    __tablename__ = "order_events"

    id = uuid_pk()
    order_id = Column(UUID(as_uuid=False), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    description = Column(Text)
    metadata_ = Column("metadata", JSONB)
    created_by = Column(String(255))
    created_at = created_at()
