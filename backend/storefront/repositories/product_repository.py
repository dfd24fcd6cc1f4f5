"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and variants and returns
domain models. Every query is scoped by tenant_id.
"""
from typing import List, Optional, Tuple

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.domain.common import slugify, unique_slug
from storefront.domain.product import (
    Product, ProductCreate, ProductUpdate, ProductVariant, ProductVariantCreate, ProductVariantUpdate,
)

PRODUCT_COLUMNS = """
    p.id, p.tenant_id, p.name, p.slug, p.sku, p.description,
    p.price, p.compare_at_price, p.cost_price,
    p.quantity, p.track_quantity, p.low_stock_threshold,
    p.status, p.category_id, p.images, p.created_at, p.updated_at,
    ARRAY(
        SELECT cp.collection_id::text FROM collection_products cp
        WHERE cp.product_id = p.id
    ) AS collection_ids
"""

# Columns a caller may write through create/update
WRITABLE_FIELDS = (
    'name', 'slug', 'sku', 'description', 'price', 'compare_at_price', 'cost_price',
    'quantity', 'track_quantity', 'low_stock_threshold', 'status', 'category_id', 'images',
)

STOCK_LEVEL_CONDITIONS = {
    'out': "p.track_quantity AND p.quantity <= 0",
    'low': "p.track_quantity AND p.quantity > 0 AND p.quantity <= p.low_stock_threshold",
    'in': "(NOT p.track_quantity OR p.quantity > p.low_stock_threshold)",
}


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        return Product(
            id=str(row['id']),
            tenant_id=str(row['tenant_id']),
            name=row['name'],
            slug=row['slug'],
            sku=row.get('sku'),
            description=row.get('description'),
            price=row['price'],
            compare_at_price=row.get('compare_at_price'),
            cost_price=row.get('cost_price'),
            quantity=row.get('quantity') or 0,
            track_quantity=row.get('track_quantity', True),
            low_stock_threshold=row.get('low_stock_threshold') or 5,
            status=row['status'],
            category_id=str(row['category_id']) if row.get('category_id') else None,
            collection_ids=list(row.get('collection_ids') or []),
            images=row.get('images') or [],
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
        )

    @staticmethod
    def _map_row_to_variant(row: dict) -> ProductVariant:
        return ProductVariant(
            id=str(row['id']),
            product_id=str(row['product_id']),
            title=row['title'],
            sku=row.get('sku'),
            price=row.get('price'),
            quantity=row.get('quantity') or 0,
            options=row.get('options') or {},
            position=row.get('position') or 0,
        )

    def find_by_id(self, tenant_id: str, product_id: str) -> Optional[Product]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE p.tenant_id = %s AND p.id = %s
            """, (tenant_id, product_id))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_product(row)

        finally:
            cursor.close()
            conn.close()

    def find_by_slug(self, tenant_id: str, slug: str) -> Optional[Product]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE p.tenant_id = %s AND p.slug = %s
            """, (tenant_id, slug))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_product(row)

        finally:
            cursor.close()
            conn.close()

    def find_by_ids(self, tenant_id: str, product_ids: List[str]) -> List[Product]:
        """Products with the given ids (unordered, missing ids skipped)"""
        if not product_ids:
            return []

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE p.tenant_id = %s AND p.id::text = ANY(%s)
            """, (tenant_id, list(product_ids)))

            return [self._map_row_to_product(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        tenant_id: str,
        status: Optional[str] = None,
        category_id: Optional[str] = None,
        search: Optional[str] = None,
        stock_level: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters

        Args:
            tenant_id: Owning store
            status: draft, active or archived
            category_id: Filter by category
            search: Search in name or SKU
            stock_level: low, out or in
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of products, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["p.tenant_id = %s"]
            params = [tenant_id]

            if status:
                conditions.append("p.status = %s")
                params.append(status)

            if category_id:
                conditions.append("p.category_id = %s")
                params.append(category_id)

            if search:
                conditions.append("(p.name ILIKE %s OR p.sku ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term])

            if stock_level in STOCK_LEVEL_CONDITIONS:
                conditions.append(STOCK_LEVEL_CONDITIONS[stock_level])

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM products p
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE {where_clause}
                ORDER BY p.created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            products = [self._map_row_to_product(row) for row in cursor.fetchall()]
            return products, total

        finally:
            cursor.close()
            conn.close()

    def _unique_slug(self, cursor, tenant_id: str, base_slug: str, exclude_id: Optional[str] = None) -> str:
        cursor.execute("""
            SELECT slug FROM products
            WHERE tenant_id = %s AND slug LIKE %s AND (%s::uuid IS NULL OR id != %s::uuid)
        """, (tenant_id, f"{base_slug}%", exclude_id, exclude_id))
        return unique_slug(base_slug, [row['slug'] for row in cursor.fetchall()])

    def create(self, tenant_id: str, data: ProductCreate) -> Product:
        """Insert a product; the slug is derived from the name when missing and de-duplicated"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            values = data.model_dump()
            values['slug'] = self._unique_slug(cursor, tenant_id, slugify(data.slug or data.name))
            values['images'] = Json(values['images'])

            columns = ", ".join(values.keys())
            placeholders = ", ".join(["%s"] * len(values))
            cursor.execute(f"""
                INSERT INTO products (tenant_id, {columns})
                VALUES (%s, {placeholders})
                RETURNING id
            """, [tenant_id] + list(values.values()))

            product_id = cursor.fetchone()['id']

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE p.id = %s
            """, (product_id,))
            row = cursor.fetchone()

            conn.commit()
            return self._map_row_to_product(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, tenant_id: str, product_id: str, data: ProductUpdate) -> Optional[Product]:
        """Partial update; returns None when the product does not exist"""
        updates = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if 'slug' in updates and updates['slug']:
                updates['slug'] = self._unique_slug(
                    cursor, tenant_id, slugify(updates['slug']), exclude_id=product_id
                )
            if 'images' in updates and updates['images'] is not None:
                updates['images'] = Json(updates['images'])

            set_parts = [f"{field} = %s" for field in updates if field in WRITABLE_FIELDS]
            params = [updates[field] for field in updates if field in WRITABLE_FIELDS]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE products
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, params + [tenant_id, product_id])

            if not cursor.fetchone():
                conn.rollback()
                return None

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                WHERE p.id = %s
            """, (product_id,))
            row = cursor.fetchone()

            conn.commit()
            return self._map_row_to_product(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_status(self, tenant_id: str, product_id: str, status: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE products
                SET status = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (status, tenant_id, product_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, product_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM products
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, product_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def get_stats(self, tenant_id: str) -> dict:
        """
        Get product statistics

        Returns:
            Dict with total, active, draft, archived, low_stock, out_of_stock
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT
                    COUNT(*) as total,
                    COUNT(*) FILTER (WHERE p.status = 'active') as active,
                    COUNT(*) FILTER (WHERE p.status = 'draft') as draft,
                    COUNT(*) FILTER (WHERE p.status = 'archived') as archived,
                    COUNT(*) FILTER (WHERE {STOCK_LEVEL_CONDITIONS['low']}) as low_stock,
                    COUNT(*) FILTER (WHERE {STOCK_LEVEL_CONDITIONS['out']}) as out_of_stock
                FROM products p
                WHERE p.tenant_id = %s
            """, (tenant_id,))

            row = cursor.fetchone()
            return {key: int(row[key] or 0) for key in (
                'total', 'active', 'draft', 'archived', 'low_stock', 'out_of_stock'
            )}

        finally:
            cursor.close()
            conn.close()

    # ========================================
    # Variants
    # ========================================

    def find_variants(self, tenant_id: str, product_id: str) -> List[ProductVariant]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, product_id, title, sku, price, quantity, options, position
                FROM product_variants
                WHERE tenant_id = %s AND product_id = %s
                ORDER BY position, title
            """, (tenant_id, product_id))

            return [self._map_row_to_variant(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_variant(self, tenant_id: str, variant_id: str) -> Optional[ProductVariant]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, product_id, title, sku, price, quantity, options, position
                FROM product_variants
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, variant_id))

            row = cursor.fetchone()
            return self._map_row_to_variant(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def create_variants(
        self,
        tenant_id: str,
        product_id: str,
        variants: List[ProductVariantCreate]
    ) -> List[ProductVariant]:
        """Insert variants after the existing ones, in the given order"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COALESCE(MAX(position), -1) as max_position
                FROM product_variants
                WHERE tenant_id = %s AND product_id = %s
            """, (tenant_id, product_id))
            position = cursor.fetchone()['max_position'] + 1

            created = []
            for variant in variants:
                cursor.execute("""
                    INSERT INTO product_variants (
                        tenant_id, product_id, title, sku, price, quantity, options, position
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id, product_id, title, sku, price, quantity, options, position
                """, (
                    tenant_id, product_id, variant.title, variant.sku, variant.price,
                    variant.quantity, Json(variant.options), position,
                ))
                created.append(self._map_row_to_variant(cursor.fetchone()))
                position += 1

            conn.commit()
            return created

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def create_variant(self, tenant_id: str, product_id: str, variant: ProductVariantCreate) -> ProductVariant:
        return self.create_variants(tenant_id, product_id, [variant])[0]

    def update_variant(
        self,
        tenant_id: str,
        product_id: str,
        variant_id: str,
        data: ProductVariantUpdate
    ) -> Optional[ProductVariant]:
        """Partial update of a variant's title, sku, price or options"""
        updates = data.model_dump(exclude_unset=True)
        if 'options' in updates:
            updates['options'] = Json(updates['options'] or {})

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            set_parts = [f"{field} = %s" for field in updates]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE product_variants
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND product_id = %s AND id = %s
                RETURNING id, product_id, title, sku, price, quantity, options, position
            """, list(updates.values()) + [tenant_id, product_id, variant_id])

            row = cursor.fetchone()
            if not row:
                conn.rollback()
                return None

            conn.commit()
            return self._map_row_to_variant(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def adjust_variant_stock(
        self,
        tenant_id: str,
        variant_id: str,
        quantity: int,
        action: str = "set"
    ) -> Optional[ProductVariant]:
        """
        Change a variant's on-hand count in a single statement

        Args:
            action: set, add or subtract (subtract stops at zero)
        """
        expressions = {
            "set": "%s",
            "add": "quantity + %s",
            "subtract": "GREATEST(0, quantity - %s)",
        }
        if action not in expressions:
            raise ValueError(f"Invalid stock action: {action}")

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE product_variants
                SET quantity = {expressions[action]}, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id, product_id, title, sku, price, quantity, options, position
            """, (quantity, tenant_id, variant_id))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row_to_variant(row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_variant(self, tenant_id: str, product_id: str, variant_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM product_variants
                WHERE tenant_id = %s AND product_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, product_id, variant_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
