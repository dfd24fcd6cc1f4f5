"""
Page builder tables and dashboard layouts
"""
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from storefront.core.database import Base
from storefront.models._columns import created_at, tenant_fk, updated_at, uuid_pk


class StorePage(Base):
    __tablename__ = "store_pages"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_store_pages_tenant_slug"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    page_type = Column(String(50), default="custom")
    status = Column(String(20), default="draft", index=True)
    is_homepage = Column(Boolean, default=False)
    meta_title = Column(String(255))
    meta_description = Column(Text)
    blocks = Column(JSONB, server_default="[]")
    settings = Column(JSONB, server_default="{}")
    published_at = Column(DateTime(timezone=True))

    created_at = created_at()
    updated_at = updated_at()


class StorePageVersion(Base):
    __tablename__ = "store_page_versions"
    __table_args__ = (UniqueConstraint("page_id", "version_number", name="uq_store_page_versions"),)

    id = uuid_pk()
    page_id = Column(UUID(as_uuid=False), ForeignKey("store_pages.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = tenant_fk()
    version_number = Column(Integer, nullable=False)
    blocks = Column(JSONB, nullable=False)
    settings = Column(JSONB, server_default="{}")
    created_by = Column(String(255))

    created_at = created_at()


class StoreTheme(Base):
    __tablename__ = "store_themes"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_store_themes_tenant"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    theme_name = Column(String(100), default="default")
    colors = Column(JSONB)
    typography = Column(JSONB)
    layout = Column(JSONB)
    custom_css = Column(Text)

    created_at = created_at()
    updated_at = updated_at()


class StoreBlockTemplate(Base):
    __tablename__ = "store_block_templates"

    id = uuid_pk()
    tenant_id = tenant_fk()
    name = Column(String(255), nullable=False)
    description = Column(Text)
    block_type = Column(String(100), nullable=False)
    block_data = Column(JSONB, nullable=False)
    thumbnail_url = Column(Text)

    created_at = created_at()
    updated_at = updated_at()


class DashboardLayout(Base):
    __tablename__ = "dashboard_layouts"

    id = uuid_pk()
    tenant_id = tenant_fk()
    user_id = Column(String(255), nullable=False, index=True)
    layout_name = Column(String(100), nullable=False)
    widgets = Column(JSONB, server_default="[]")
    columns = Column(Integer, default=12)
    row_height = Column(Integer, default=100)
    gap = Column(Integer, default=16)
    is_default = Column(Boolean, default=False)

    created_at = created_at()
    updated_at = updated_at()
