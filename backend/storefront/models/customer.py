"""
Customers, contact messages, media library and audit log
"""
from sqlalchemy import (
    BigInteger, Boolean, Column, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from storefront.core.database import Base
from storefront.models._columns import created_at, tenant_fk, updated_at, uuid_pk


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_customers_tenant_email"),)

    id = uuid_pk()
    tenant_id = tenant_fk()
    email = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(50))
    accepts_marketing = Column(Boolean, default=False)
    status = Column(String(20), default="active")
    orders_count = Column(Integer, default=0)
    tags = Column(JSONB, server_default="[]")

    created_at = created_at()
    updated_at = updated_at()


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    id = uuid_pk()
    tenant_id = tenant_fk()
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(255))
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False)

    created_at = created_at()


class MediaAsset(Base):
    __tablename__ = "media_assets"

    id = uuid_pk()
    tenant_id = tenant_fk()
    file_name = Column(String(255), nullable=False)
    storage_path = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    mime_type = Column(String(100), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)

    created_at = created_at()


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = uuid_pk()
    tenant_id = tenant_fk()
    user_id = Column(String(255))
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(255))
    old_values = Column(JSONB)
    new_values = Column(JSONB)

    created_at = created_at()
