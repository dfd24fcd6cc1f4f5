"""
Catalog tables: products, variants, categories and collections
"""
from sqlalchemy import (
    DECIMAL, Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from storefront.core.database import Base
from storefront.models._columns import created_at, tenant_fk, updated_at, uuid_pk


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_categories_tenant_slug"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(Text)
    parent_id = Column(UUID(as_uuid=False), ForeignKey("categories.id", ondelete="SET NULL"))
    sort_order = Column(Integer, default=0)

    created_at = created_at()
    updated_at = updated_at()


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_products_tenant_slug"),)

    id = uuid_pk()
    tenant_id = tenant_fk()

    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    sku = Column(String(100), index=True)
    description = Column(Text)

    # Pricing
    price = Column(DECIMAL(12, 2), nullable=False, default=0)
    compare_at_price = Column(DECIMAL(12, 2))
    cost_price = Column(DECIMAL(12, 2))

    # Inventory
    quantity = Column(Integer, nullable=False, default=0)
    track_quantity = Column(Boolean, default=True)
    low_stock_threshold = Column(Integer, default=5)

    status = Column(String(20), nullable=False, default="draft", index=True)
    category_id = Column(UUID(as_uuid=False), ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    images = Column(JSONB, server_default="[]")

    created_at = created_at()
    updated_at = updated_at()

    variants = relationship("ProductVariant", cascade="all, delete-orphan")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = uuid_pk()
    tenant_id = tenant_fk()
    product_id = Column(UUID(as_uuid=False), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    sku = Column(String(100))
    price = Column(DECIMAL(12, 2))
    quantity = Column(Integer, default=0)
    options = Column(JSONB, server_default="{}")
    position = Column(Integer, default=0)

    created_at = created_at()
    updated_at = updated_at()


class Collection(Base):
    __tablename__ = "collections"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_collections_tenant_slug"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(Text)
    image_alt = Column(String(255))
    meta_title = Column(String(255))
    meta_description = Column(Text)
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    type = Column(String(20), default="manual")
    conditions = Column(JSONB)

    created_at = created_at()
    updated_at = updated_at()


class CollectionProduct(Base):
    __tablename__ = "collection_products"
    __table_args__ = (UniqueConstraint("collection_id", "product_id", name="uq_collection_products"),)

    id = uuid_pk()
    collection_id = Column(UUID(as_uuid=False), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=False), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0)
    created_at = created_at()
