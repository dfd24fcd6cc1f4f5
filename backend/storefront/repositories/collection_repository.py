"""
Collection Repository - Data Access Layer for Collections

Collection slugs are unique per tenant: create/update check for a clash
before writing and raise ConflictError(SLUG_TAKEN).
"""
from typing import List, Optional, Tuple

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.core.errors import ConflictError
from storefront.domain.collection import (
    Collection, CollectionCreate, CollectionStats, CollectionUpdate,
)
from storefront.domain.common import slugify
from storefront.repositories.product_repository import PRODUCT_COLUMNS, ProductRepository

COLLECTION_COLUMNS = """
    c.id, c.tenant_id, c.name, c.slug, c.description, c.image_url, c.image_alt,
    c.meta_title, c.meta_description, c.is_active, c.sort_order, c.type,
    c.conditions, c.created_at, c.updated_at,
    (SELECT COUNT(*) FROM collection_products cp WHERE cp.collection_id = c.id) AS product_count
"""


class CollectionRepository:
    """Repository for Collection data access"""

    @staticmethod
    def _map_row(row: dict) -> Collection:
        return Collection(
            id=str(row['id']),
            tenant_id=str(row['tenant_id']),
            name=row['name'],
            slug=row['slug'],
            description=row.get('description'),
            image_url=row.get('image_url'),
            image_alt=row.get('image_alt'),
            meta_title=row.get('meta_title'),
            meta_description=row.get('meta_description'),
            is_active=row.get('is_active', True),
            sort_order=row.get('sort_order') or 0,
            type=row.get('type') or 'manual',
            conditions=row.get('conditions'),
            product_count=row.get('product_count'),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    def _fetch_one(self, where: str, params: tuple) -> Optional[Collection]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {COLLECTION_COLUMNS}
                FROM collections c
                WHERE {where}
            """, params)

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, tenant_id: str, collection_id: str) -> Optional[Collection]:
        return self._fetch_one("c.tenant_id = %s AND c.id = %s", (tenant_id, collection_id))

    def find_by_slug(self, tenant_id: str, slug: str) -> Optional[Collection]:
        return self._fetch_one("c.tenant_id = %s AND c.slug = %s", (tenant_id, slug))

    def find_all(
        self,
        tenant_id: str,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Collection], int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["c.tenant_id = %s"]
            params = [tenant_id]

            if is_active is not None:
                conditions.append("c.is_active = %s")
                params.append(is_active)

            if search:
                conditions.append("(c.name ILIKE %s OR c.description ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term])

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM collections c
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {COLLECTION_COLUMNS}
                FROM collections c
                WHERE {where_clause}
                ORDER BY c.sort_order, c.name
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def find_active(self, tenant_id: str) -> List[Collection]:
        collections, _ = self.find_all(tenant_id, is_active=True, limit=1000)
        return collections

    def search(self, tenant_id: str, query: str, limit: int = 20) -> List[Collection]:
        collections, _ = self.find_all(tenant_id, search=query, limit=limit)
        return collections

    def get_stats(self, tenant_id: str) -> CollectionStats:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    COUNT(*) as total,
                    COUNT(*) FILTER (WHERE c.is_active) as active,
                    COUNT(*) FILTER (WHERE c.type = 'manual') as manual,
                    COUNT(*) FILTER (WHERE c.type = 'automatic') as automatic,
                    COUNT(*) FILTER (WHERE NOT EXISTS (
                        SELECT 1 FROM collection_products cp WHERE cp.collection_id = c.id
                    )) as empty
                FROM collections c
                WHERE c.tenant_id = %s
            """, (tenant_id,))

            row = cursor.fetchone()
            return CollectionStats(**{key: int(row[key] or 0) for key in row})

        finally:
            cursor.close()
            conn.close()

    @staticmethod
    def _assert_slug_free(cursor, tenant_id: str, slug: str, exclude_id: Optional[str] = None):
        cursor.execute("""
            SELECT id FROM collections
            WHERE tenant_id = %s AND slug = %s AND (%s::uuid IS NULL OR id != %s::uuid)
        """, (tenant_id, slug, exclude_id, exclude_id))
        if cursor.fetchone():
            raise ConflictError(
                f"A collection with slug '{slug}' already exists",
                code="SLUG_TAKEN",
                details={"slug": slug},
            )

    def create(self, tenant_id: str, data: CollectionCreate) -> Collection:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            slug = slugify(data.slug or data.name)
            self._assert_slug_free(cursor, tenant_id, slug)

            cursor.execute("""
                INSERT INTO collections (
                    tenant_id, name, slug, description, image_url, image_alt,
                    meta_title, meta_description, is_active, sort_order, type, conditions
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
            """, (
                tenant_id, data.name, slug, data.description, data.image_url, data.image_alt,
                data.meta_title, data.meta_description, data.is_active, data.sort_order,
                data.type, Json(data.conditions) if data.conditions is not None else None,
            ))
            collection_id = cursor.fetchone()['id']
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(tenant_id, str(collection_id))

    def update(self, tenant_id: str, collection_id: str, data: CollectionUpdate) -> Optional[Collection]:
        updates = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if updates.get('slug'):
                updates['slug'] = slugify(updates['slug'])
                self._assert_slug_free(cursor, tenant_id, updates['slug'], exclude_id=collection_id)
            elif 'slug' in updates:
                del updates['slug']

            if 'conditions' in updates and updates['conditions'] is not None:
                updates['conditions'] = Json(updates['conditions'])

            set_parts = [f"{field} = %s" for field in updates]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE collections
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, list(updates.values()) + [tenant_id, collection_id])

            found = cursor.fetchone() is not None
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(tenant_id, collection_id) if found else None

    def delete(self, tenant_id: str, collection_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM collections
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, collection_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    # ========================================
    # Collection membership
    # ========================================

    def get_products(self, tenant_id: str, collection_id: str, active_only: bool = False) -> List[dict]:
        """Products in the collection ordered by position, each with its position"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            status_filter = "AND p.status = 'active'" if active_only else ""
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}, cp.position
                FROM collection_products cp
                JOIN collections c ON c.id = cp.collection_id
                JOIN products p ON p.id = cp.product_id
                WHERE c.tenant_id = %s AND cp.collection_id = %s {status_filter}
                ORDER BY cp.position
            """, (tenant_id, collection_id))

            results = []
            for row in cursor.fetchall():
                product = ProductRepository._map_row_to_product(row).to_dict()
                product['position'] = row['position']
                results.append(product)
            return results

        finally:
            cursor.close()
            conn.close()

    def _owns(self, cursor, tenant_id: str, collection_id: str) -> bool:
        cursor.execute("""
            SELECT id FROM collections WHERE tenant_id = %s AND id = %s
        """, (tenant_id, collection_id))
        return cursor.fetchone() is not None

    def add_product(
        self,
        tenant_id: str,
        collection_id: str,
        product_id: str,
        position: Optional[int] = None
    ) -> bool:
        """
        Add a product to a collection

        Idempotent: an existing membership only has its position updated
        (when a position is given).
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns(cursor, tenant_id, collection_id):
                return False

            cursor.execute("""
                SELECT id FROM collection_products
                WHERE collection_id = %s AND product_id = %s
            """, (collection_id, product_id))
            existing = cursor.fetchone()

            if existing:
                if position is not None:
                    cursor.execute("""
                        UPDATE collection_products SET position = %s WHERE id = %s
                    """, (position, existing['id']))
            else:
                cursor.execute("""
                    INSERT INTO collection_products (collection_id, product_id, position)
                    VALUES (%s, %s, %s)
                """, (collection_id, product_id, position if position is not None else 0))

            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def remove_product(self, tenant_id: str, collection_id: str, product_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns(cursor, tenant_id, collection_id):
                return False

            cursor.execute("""
                DELETE FROM collection_products
                WHERE collection_id = %s AND product_id = %s
                RETURNING id
            """, (collection_id, product_id))

            removed = cursor.fetchone() is not None
            conn.commit()
            return removed

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def reorder_products(self, tenant_id: str, collection_id: str, product_ids: List[str]) -> bool:
        """Set each product's position to its index in product_ids"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns(cursor, tenant_id, collection_id):
                return False

            for index, product_id in enumerate(product_ids):
                cursor.execute("""
                    UPDATE collection_products SET position = %s
                    WHERE collection_id = %s AND product_id = %s
                """, (index, collection_id, product_id))

            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
