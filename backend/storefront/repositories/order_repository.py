"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders, their items, status history and
events. Status changes are validated against the order status machine.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.core.errors import AppError, NotFoundError
from storefront.domain.order import (
    ORDER_STATUS_TRANSITIONS, Order, OrderCreate, OrderItem, OrderStats,
)

ORDER_COLUMNS = """
    id, tenant_id, customer_id, order_number, status, payment_status, fulfillment_status,
    subtotal, discount_total, shipping_total, tax_total, total, currency, items_count,
    shipping_address, customer_email, customer_name, customer_note,
    discount_id, voucher_code_id, discount_code, cart_id, stripe_payment_intent_id,
    created_at, updated_at
"""

ITEM_COLUMNS = """
    id, order_id, product_id, variant_id, product_name, product_sku, product_image,
    variant_title, quantity, unit_price, total_price, quantity_fulfilled, discount_amount
"""

UUID_FIELDS = ('id', 'tenant_id', 'customer_id', 'discount_id', 'voucher_code_id', 'cart_id')

# Columns that may be changed through update()
UPDATABLE_FIELDS = (
    'customer_email', 'customer_name', 'customer_note', 'shipping_address',
    'shipping_total', 'tax_total', 'fulfillment_status',
)


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    Returns Order domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_order(row: dict, items: Optional[List[OrderItem]] = None) -> Order:
        data = dict(row)
        for field in UUID_FIELDS:
            if data.get(field) is not None:
                data[field] = str(data[field])
        data['items'] = items or []
        return Order(**data)

    @staticmethod
    def _map_row_to_item(row: dict) -> OrderItem:
        data = dict(row)
        for field in ('id', 'order_id', 'product_id', 'variant_id'):
            if data.get(field) is not None:
                data[field] = str(data[field])
        return OrderItem(**data)

    @staticmethod
    def _record_event(cursor, order_id: str, event_type: str, description: str,
                      created_by: Optional[str] = None, metadata: Optional[dict] = None):
        cursor.execute("""
            INSERT INTO order_events (order_id, event_type, description, metadata, created_by)
            VALUES (%s, %s, %s, %s, %s)
        """, (order_id, event_type, description, Json(metadata or {}), created_by))

    def _fetch_one(self, where: str, params: tuple, with_items: bool = False) -> Optional[Order]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE {where}
            """, params)

            row = cursor.fetchone()
            if not row:
                return None

            items = []
            if with_items:
                cursor.execute(f"""
                    SELECT {ITEM_COLUMNS}
                    FROM order_items
                    WHERE order_id = %s
                    ORDER BY created_at
                """, (row['id'],))
                items = [self._map_row_to_item(item) for item in cursor.fetchall()]

            return self._map_row_to_order(row, items)

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, tenant_id: str, order_id: str) -> Optional[Order]:
        """Find order by ID, with its items"""
        return self._fetch_one("tenant_id = %s AND id = %s", (tenant_id, order_id), with_items=True)

    def find_by_order_number(self, tenant_id: str, order_number: str) -> Optional[Order]:
        return self._fetch_one(
            "tenant_id = %s AND order_number = %s", (tenant_id, order_number), with_items=True
        )

    def find_by_payment_intent(self, payment_intent_id: str, tenant_id: Optional[str] = None) -> Optional[Order]:
        """
        Find the order a Stripe PaymentIntent was created for

        Webhooks do not know the tenant up front, so tenant_id is optional here.
        """
        if tenant_id:
            return self._fetch_one(
                "tenant_id = %s AND stripe_payment_intent_id = %s", (tenant_id, payment_intent_id)
            )
        return self._fetch_one("stripe_payment_intent_id = %s", (payment_intent_id,))

    def find_by_ids(self, tenant_id: str, order_ids: List[str]) -> List[Order]:
        """Orders with the given ids, without items"""
        if not order_ids:
            return []

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE tenant_id = %s AND id::text = ANY(%s)
                ORDER BY created_at DESC
            """, (tenant_id, list(order_ids)))

            return [self._map_row_to_order(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        tenant_id: str,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """
        Find orders with filters

        Args:
            tenant_id: Owning store
            status: Order status
            payment_status: Payment status
            search: Search in order number, customer name or email
            from_date / to_date: Inclusive creation date range
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of orders, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["tenant_id = %s"]
            params: List[Any] = [tenant_id]

            if status:
                conditions.append("status = %s")
                params.append(status)

            if payment_status:
                conditions.append("payment_status = %s")
                params.append(payment_status)

            if search:
                conditions.append("(order_number ILIKE %s OR customer_name ILIKE %s OR customer_email ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            if from_date:
                conditions.append("created_at::date >= %s")
                params.append(from_date)

            if to_date:
                conditions.append("created_at::date <= %s")
                params.append(to_date)

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM orders
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            orders = [self._map_row_to_order(row) for row in cursor.fetchall()]
            return orders, total

        finally:
            cursor.close()
            conn.close()

    def create(self, tenant_id: str, data: OrderCreate) -> Order:
        """Insert an order and record an order_created event"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            values = data.model_dump()
            if values.get('shipping_address') is not None:
                values['shipping_address'] = Json(values['shipping_address'])

            columns = ", ".join(values.keys())
            placeholders = ", ".join(["%s"] * len(values))
            cursor.execute(f"""
                INSERT INTO orders (tenant_id, {columns})
                VALUES (%s, {placeholders})
                RETURNING {ORDER_COLUMNS}
            """, [tenant_id] + list(values.values()))

            row = cursor.fetchone()
            self._record_event(cursor, row['id'], "order_created", f"Order {data.order_number} created")

            conn.commit()
            return self._map_row_to_order(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def add_items(self, tenant_id: str, order_id: str, items: List[OrderItem]) -> List[OrderItem]:
        """Insert order lines and refresh the order's items_count"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id FROM orders WHERE tenant_id = %s AND id = %s", (tenant_id, order_id))
            if not cursor.fetchone():
                raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")

            inserted = []
            for item in items:
                cursor.execute(f"""
                    INSERT INTO order_items (
                        order_id, product_id, variant_id, product_name, product_sku,
                        product_image, variant_title, quantity, unit_price, total_price,
                        discount_amount
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {ITEM_COLUMNS}
                """, (
                    order_id, item.product_id, item.variant_id, item.product_name, item.product_sku,
                    item.product_image, item.variant_title, item.quantity, item.unit_price,
                    item.total_price, item.discount_amount,
                ))
                inserted.append(self._map_row_to_item(cursor.fetchone()))

            cursor.execute("""
                UPDATE orders
                SET items_count = %s, updated_at = NOW()
                WHERE id = %s
            """, (sum(item.quantity for item in items), order_id))

            conn.commit()
            return inserted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, tenant_id: str, order_id: str, updates: Dict[str, Any]) -> Optional[Order]:
        """Update customer/shipping fields; other keys are ignored"""
        fields = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}
        if 'shipping_address' in fields and fields['shipping_address'] is not None:
            fields['shipping_address'] = Json(fields['shipping_address'])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            set_parts = [f"{field} = %s" for field in fields]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE orders
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, list(fields.values()) + [tenant_id, order_id])

            found = cursor.fetchone() is not None
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(tenant_id, order_id) if found else None

    def set_payment_intent(self, tenant_id: str, order_id: str, payment_intent_id: str) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET stripe_payment_intent_id = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
            """, (payment_intent_id, tenant_id, order_id))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, order_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM orders
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, order_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_status(
        self,
        tenant_id: str,
        order_id: str,
        new_status: str,
        note: Optional[str] = None,
        changed_by: Optional[str] = None
    ) -> Order:
        """
        Move an order to a new status

        Raises:
            NotFoundError: ORDER_NOT_FOUND
            AppError: INVALID_STATUS_TRANSITION when the status machine forbids it
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, status FROM orders
                WHERE tenant_id = %s AND id = %s
                FOR UPDATE
            """, (tenant_id, order_id))
            row = cursor.fetchone()

            if not row:
                raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")

            current_status = row['status']
            allowed = ORDER_STATUS_TRANSITIONS.get(current_status, [])
            if new_status not in allowed:
                raise AppError(
                    f"Cannot transition from {current_status} to {new_status}",
                    code="INVALID_STATUS_TRANSITION",
                    details={"current": current_status, "allowed": allowed},
                )

            cursor.execute(f"""
                UPDATE orders
                SET status = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING {ORDER_COLUMNS}
            """, (new_status, order_id))
            updated = cursor.fetchone()

            cursor.execute("""
                INSERT INTO order_status_history (order_id, from_status, to_status, note, changed_by)
                VALUES (%s, %s, %s, %s, %s)
            """, (order_id, current_status, new_status, note, changed_by))

            message = f"Status changed from {current_status} to {new_status}"
            if note:
                message += f": {note}"
            self._record_event(cursor, order_id, "status_changed", message, created_by=changed_by)

            conn.commit()
            return self._map_row_to_order(updated)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_payment_status(
        self,
        tenant_id: str,
        order_id: str,
        payment_status: str,
        payment_intent_id: Optional[str] = None
    ) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET payment_status = %s,
                    stripe_payment_intent_id = COALESCE(%s, stripe_payment_intent_id),
                    updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (payment_status, payment_intent_id, tenant_id, order_id))

            updated = cursor.fetchone() is not None
            if updated:
                self._record_event(
                    cursor, order_id, "payment_status_changed",
                    f"Payment status changed to {payment_status}",
                )

            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def add_note(self, tenant_id: str, order_id: str, note: str, created_by: Optional[str] = None) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id FROM orders WHERE tenant_id = %s AND id = %s", (tenant_id, order_id))
            if not cursor.fetchone():
                return False

            self._record_event(cursor, order_id, "note_added", note, created_by=created_by)
            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_timeline(self, tenant_id: str, order_id: str) -> Dict[str, List[dict]]:
        """Status history and events, newest first"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT h.from_status, h.to_status, h.note, h.changed_by, h.created_at
                FROM order_status_history h
                JOIN orders o ON o.id = h.order_id
                WHERE o.tenant_id = %s AND h.order_id = %s
                ORDER BY h.created_at DESC
            """, (tenant_id, order_id))
            history = cursor.fetchall()

            cursor.execute("""
                SELECT e.event_type, e.description, e.metadata, e.created_by, e.created_at
                FROM order_events e
                JOIN orders o ON o.id = e.order_id
                WHERE o.tenant_id = %s AND e.order_id = %s
                ORDER BY e.created_at DESC
            """, (tenant_id, order_id))
            events = cursor.fetchall()

            return {'status_history': history, 'events': events}

        finally:
            cursor.close()
            conn.close()

    def get_stats(self, tenant_id: str) -> OrderStats:
        """
        Get order statistics

        Returns:
            OrderStats with count per status, paid revenue and today's figures
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT status, COUNT(*) as count
                FROM orders
                WHERE tenant_id = %s
                GROUP BY status
            """, (tenant_id,))
            by_status = {row['status']: int(row['count']) for row in cursor.fetchall()}

            cursor.execute("""
                SELECT
                    COUNT(*) as total,
                    COALESCE(SUM(total) FILTER (WHERE payment_status = 'paid'), 0) as revenue,
                    COUNT(*) FILTER (WHERE payment_status = 'paid') as paid_orders,
                    COUNT(*) FILTER (WHERE payment_status = 'pending') as unpaid_count,
                    COUNT(*) FILTER (WHERE created_at::date = CURRENT_DATE) as today_count,
                    COALESCE(SUM(total) FILTER (WHERE created_at::date = CURRENT_DATE), 0) as today_revenue
                FROM orders
                WHERE tenant_id = %s
            """, (tenant_id,))
            totals = cursor.fetchone()

            return OrderStats(
                total=int(totals['total']),
                by_status=by_status,
                revenue=totals['revenue'],
                paid_orders=int(totals['paid_orders']),
                unpaid_count=int(totals['unpaid_count']),
                today_count=int(totals['today_count']),
                today_revenue=totals['today_revenue'],
            )

        finally:
            cursor.close()
            conn.close()
