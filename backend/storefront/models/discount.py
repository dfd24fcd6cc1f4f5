"""
Discounts (sales and vouchers), voucher codes and usage records
"""
from sqlalchemy import (
    DECIMAL, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from storefront.core.database import Base
from storefront.models._columns import created_at, tenant_fk, updated_at, uuid_pk


class Discount(Base):
    __tablename__ = "discounts"

    id = uuid_pk()
    tenant_id = tenant_fk()
    name = Column(String(255), nullable=False)
    description = Column(Text)
    kind = Column(String(20), nullable=False, default="voucher", index=True)
    type = Column(String(20), nullable=False, default="percentage")
    value = Column(DECIMAL(12, 2), nullable=False, default=0)
    scope = Column(String(30), nullable=False, default="entire_order")

    # Conditions and limits
    apply_once_per_order = Column(Boolean, default=False)
    min_order_amount = Column(DECIMAL(12, 2))
    min_checkout_items_quantity = Column(Integer)
    usage_limit = Column(Integer)
    used_count = Column(Integer, default=0)
    apply_once_per_customer = Column(Boolean, default=False)
    only_for_staff = Column(Boolean, default=False)
    single_use = Column(Boolean, default=False)

    starts_at = Column(DateTime(timezone=True))
    ends_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True)

    applicable_product_ids = Column(JSONB, server_default="[]")
    applicable_collection_ids = Column(JSONB, server_default="[]")
    applicable_category_ids = Column(JSONB, server_default="[]")

    created_at = created_at()
    updated_at = updated_at()


class VoucherCode(Base):
    __tablename__ = "voucher_codes"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_voucher_codes_tenant_code"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    discount_id = Column(UUID(as_uuid=False), ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(100), nullable=False)
    status = Column(String(20), default="active")
    used_count = Column(Integer, default=0)
    usage_limit = Column(Integer)
    is_manually_created = Column(Boolean, default=False)
    used_at = Column(DateTime(timezone=True))

    created_at = created_at()


class DiscountUsage(Base):
    __tablename__ = "discount_usages"

    id = uuid_pk()
    tenant_id = tenant_fk()
    discount_id = Column(UUID(as_uuid=False), ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False, index=True)
    voucher_code_id = Column(UUID(as_uuid=False), ForeignKey("voucher_codes.id", ondelete="SET NULL"))
    order_id = Column(UUID(as_uuid=False), ForeignKey("orders.id", ondelete="SET NULL"))
    customer_id = Column(UUID(as_uuid=False), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    customer_email = Column(String(255))
    discount_amount = Column(DECIMAL(12, 2), nullable=False, default=0)

    created_at = created_at()
