"""
Shared FastAPI dependencies for the storefront (public) routes
"""
from fastapi import Path

from storefront.core.errors import NotFoundError
from storefront.domain.tenant import Tenant
from storefront.repositories.tenant_repository import TenantRepository


def get_store_tenant(slug: str = Path(..., description="Store slug")) -> Tenant:
    """Resolve the public store from its slug; inactive stores are hidden"""
    tenant = TenantRepository().find_by_slug(slug)
    if not tenant or not tenant.is_active:
        raise NotFoundError(f"Store '{slug}' not found", code="TENANT_NOT_FOUND")
    return tenant
