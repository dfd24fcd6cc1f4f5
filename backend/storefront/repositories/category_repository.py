"""
Category Repository - read access to product categories
"""
from typing import List

from storefront.core.database import get_db_connection_dict
from storefront.domain.product import Category


class CategoryRepository:

    @staticmethod
    def _map_row(row: dict) -> Category:
        return Category(
            id=str(row['id']),
            tenant_id=str(row['tenant_id']),
            name=row['name'],
            slug=row['slug'],
            description=row.get('description'),
            image_url=row.get('image_url'),
            parent_id=str(row['parent_id']) if row.get('parent_id') else None,
            sort_order=row.get('sort_order') or 0,
            product_count=row.get('product_count') or 0,
        )

    def find_all(self, tenant_id: str) -> List[Category]:
        """All categories with the number of active products in each"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    c.id, c.tenant_id, c.name, c.slug, c.description, c.image_url,
                    c.parent_id, c.sort_order,
                    (SELECT COUNT(*) FROM products p
                     WHERE p.category_id = c.id AND p.status = 'active') AS product_count
                FROM categories c
                WHERE c.tenant_id = %s
                ORDER BY c.sort_order, c.name
            """, (tenant_id,))

            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
