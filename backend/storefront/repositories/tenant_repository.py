"""
Tenant Repository - Data Access Layer for merchant stores
"""
from typing import Optional

from storefront.core.database import get_db_connection_dict
from storefront.domain.tenant import Tenant

TENANT_COLUMNS = """
    id, name, slug, currency, stripe_account_id,
    stripe_onboarding_complete, is_active, settings
"""


class TenantRepository:
    """Lookups used to resolve a storefront slug or a dashboard token to a tenant"""

    @staticmethod
    def _map_row(row: dict) -> Tenant:
        return Tenant(
            id=str(row['id']),
            name=row['name'],
            slug=row['slug'],
            currency=row.get('currency') or "USD",
            stripe_account_id=row.get('stripe_account_id'),
            stripe_onboarding_complete=bool(row.get('stripe_onboarding_complete')),
            is_active=row.get('is_active', True),
            settings=row.get('settings') or {},
        )

    def find_by_slug(self, slug: str) -> Optional[Tenant]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {TENANT_COLUMNS}
                FROM tenants
                WHERE slug = %s
            """, (slug,))

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, tenant_id: str) -> Optional[Tenant]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {TENANT_COLUMNS}
                FROM tenants
                WHERE id = %s
            """, (tenant_id,))

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()
