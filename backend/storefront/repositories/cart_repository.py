"""
Cart Repository - Data Access Layer for Carts

Cart items are reached through their cart, so every item query joins
carts to enforce the tenant scope.
"""
from typing import Optional

from storefront.core.database import get_db_connection_dict
from storefront.domain.cart import Cart, CartCreate, CartItem, CartTotals, CartUpdate

CART_COLUMNS = """
    id, tenant_id, customer_id, email, customer_name, customer_phone, status, currency,
    subtotal, discount_total, shipping_total, tax_total, total,
    shipping_address, shipping_city, shipping_area, shipping_postal_code, shipping_country,
    billing_address, discount_id, voucher_code_id, voucher_code, created_at, updated_at
"""

ITEM_COLUMNS = """
    ci.id, ci.product_id, ci.variant_id, ci.product_name, ci.product_sku, ci.product_image,
    ci.unit_price, ci.compare_at_price, ci.quantity,
    CASE WHEN p.category_id IS NULL THEN ARRAY[]::text[] ELSE ARRAY[p.category_id::text] END AS category_ids,
    ARRAY(
        SELECT cp.collection_id::text FROM collection_products cp
        WHERE cp.product_id = ci.product_id
    ) AS collection_ids
"""

UUID_FIELDS = ('id', 'tenant_id', 'customer_id', 'discount_id', 'voucher_code_id')


class CartRepository:
    """
    Repository for Cart data access

    Carts are returned with their items loaded.
    """

    @staticmethod
    def _map_item(row: dict) -> CartItem:
        return CartItem(
            id=str(row['id']),
            product_id=str(row['product_id']),
            variant_id=str(row['variant_id']) if row.get('variant_id') else None,
            product_name=row['product_name'],
            product_sku=row.get('product_sku'),
            product_image=row.get('product_image'),
            unit_price=row['unit_price'],
            compare_at_price=row.get('compare_at_price'),
            quantity=row['quantity'],
            category_ids=list(row.get('category_ids') or []),
            collection_ids=list(row.get('collection_ids') or []),
        )

    def _load(self, cursor, row: dict) -> Cart:
        cursor.execute(f"""
            SELECT {ITEM_COLUMNS}
            FROM cart_items ci
            LEFT JOIN products p ON p.id = ci.product_id
            WHERE ci.cart_id = %s
            ORDER BY ci.created_at
        """, (row['id'],))
        items = [self._map_item(item) for item in cursor.fetchall()]

        data = dict(row)
        for field in UUID_FIELDS:
            if data.get(field) is not None:
                data[field] = str(data[field])
        for field in ('discount_total', 'shipping_total', 'tax_total'):
            if data.get(field) is None:
                data[field] = 0
        data['items'] = items
        return Cart(**data)

    def find_by_id(self, tenant_id: str, cart_id: str) -> Optional[Cart]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CART_COLUMNS}
                FROM carts
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, cart_id))

            row = cursor.fetchone()
            return self._load(cursor, row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_active_by_id(self, tenant_id: str, cart_id: str) -> Optional[Cart]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CART_COLUMNS}
                FROM carts
                WHERE tenant_id = %s AND id = %s AND status = 'active'
            """, (tenant_id, cart_id))

            row = cursor.fetchone()
            return self._load(cursor, row) if row else None

        finally:
            cursor.close()
            conn.close()

    def create(self, tenant_id: str, data: CartCreate, default_currency: str = "USD") -> Cart:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO carts (tenant_id, currency, customer_id, email, status)
                VALUES (%s, %s, %s, %s, 'active')
                RETURNING {CART_COLUMNS}
            """, (tenant_id, data.currency or default_currency, data.customer_id, data.email))

            row = cursor.fetchone()
            conn.commit()

            values = dict(row)
            values['items'] = []
            for field in UUID_FIELDS:
                if values.get(field) is not None:
                    values[field] = str(values[field])
            return Cart(**values)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, tenant_id: str, cart_id: str, data: CartUpdate) -> Optional[Cart]:
        """Partial update of customer/shipping fields; returns the cart with items"""
        updates = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            set_parts = [f"{field} = %s" for field in updates]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE carts
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING {CART_COLUMNS}
            """, list(updates.values()) + [tenant_id, cart_id])

            row = cursor.fetchone()
            if not row:
                conn.rollback()
                return None

            cart = self._load(cursor, row)
            conn.commit()
            return cart

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def _owns(self, cursor, tenant_id: str, cart_id: str) -> bool:
        cursor.execute("SELECT id FROM carts WHERE tenant_id = %s AND id = %s", (tenant_id, cart_id))
        return cursor.fetchone() is not None

    def add_item(self, tenant_id: str, cart_id: str, item: dict) -> Optional[str]:
        """
        Add a line to a cart

        A line with the same product and variant already in the cart has its
        quantity increased instead of a second line being created.

        Args:
            item: product_id, variant_id, product_name, product_sku,
                  product_image, unit_price, compare_at_price, quantity

        Returns:
            The cart item id, or None if the cart does not belong to the tenant
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns(cursor, tenant_id, cart_id):
                return None

            if item.get('variant_id'):
                cursor.execute("""
                    SELECT id, quantity FROM cart_items
                    WHERE cart_id = %s AND product_id = %s AND variant_id = %s
                """, (cart_id, item['product_id'], item['variant_id']))
            else:
                cursor.execute("""
                    SELECT id, quantity FROM cart_items
                    WHERE cart_id = %s AND product_id = %s AND variant_id IS NULL
                """, (cart_id, item['product_id']))
            existing = cursor.fetchone()

            if existing:
                cursor.execute("""
                    UPDATE cart_items
                    SET quantity = %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING id
                """, (existing['quantity'] + item['quantity'], existing['id']))
            else:
                cursor.execute("""
                    INSERT INTO cart_items (
                        cart_id, product_id, variant_id, product_name, product_sku,
                        product_image, unit_price, compare_at_price, quantity
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (
                    cart_id, item['product_id'], item.get('variant_id'), item['product_name'],
                    item.get('product_sku'), item.get('product_image'), item['unit_price'],
                    item.get('compare_at_price'), item['quantity'],
                ))

            item_id = str(cursor.fetchone()['id'])
            conn.commit()
            return item_id

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_item_quantity(self, tenant_id: str, cart_id: str, item_id: str, quantity: int) -> bool:
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            return self.remove_item(tenant_id, cart_id, item_id)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE cart_items ci
                SET quantity = %s, updated_at = NOW()
                FROM carts c
                WHERE c.id = ci.cart_id AND c.tenant_id = %s AND ci.cart_id = %s AND ci.id = %s
                RETURNING ci.id
            """, (quantity, tenant_id, cart_id, item_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def remove_item(self, tenant_id: str, cart_id: str, item_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM cart_items ci
                USING carts c
                WHERE c.id = ci.cart_id AND c.tenant_id = %s AND ci.cart_id = %s AND ci.id = %s
                RETURNING ci.id
            """, (tenant_id, cart_id, item_id))

            removed = cursor.fetchone() is not None
            conn.commit()
            return removed

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def clear(self, tenant_id: str, cart_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns(cursor, tenant_id, cart_id):
                return False

            cursor.execute("DELETE FROM cart_items WHERE cart_id = %s", (cart_id,))
            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def save_totals(self, tenant_id: str, cart_id: str, totals: CartTotals) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE carts
                SET subtotal = %s, discount_total = %s, shipping_total = %s,
                    tax_total = %s, total = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
            """, (
                totals.subtotal, totals.discount_total, totals.shipping_total,
                totals.tax_total, totals.total, tenant_id, cart_id,
            ))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def set_discount(
        self,
        tenant_id: str,
        cart_id: str,
        discount_id: Optional[str],
        voucher_code_id: Optional[str],
        voucher_code: Optional[str],
    ) -> None:
        """Attach (or with all None, detach) a voucher"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE carts
                SET discount_id = %s, voucher_code_id = %s, voucher_code = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
            """, (discount_id, voucher_code_id, voucher_code, tenant_id, cart_id))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def mark_completed(self, tenant_id: str, cart_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE carts
                SET status = 'completed', updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, cart_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
