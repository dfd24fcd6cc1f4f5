"""
Tenants (merchant stores)
"""
from sqlalchemy import Boolean, Column, String
from sqlalchemy.dialects.postgresql import JSONB

from storefront.core.database import Base
from storefront.models._columns import created_at, updated_at, uuid_pk


class Tenant(Base):
    __tablename__ = "tenants"

    id = uuid_pk()
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    currency = Column(String(3), nullable=False, default="USD", server_default="USD")

    # Stripe Connect
    stripe_account_id = Column(String(255))
    stripe_onboarding_complete = Column(Boolean, default=False, server_default="false")

    is_active = Column(Boolean, default=True, server_default="true")
    settings = Column(JSONB, server_default="{}")

    created_at = created_at()
    updated_at = updated_at()
