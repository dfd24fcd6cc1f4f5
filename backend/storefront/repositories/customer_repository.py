"""
Customer Repository - shoppers, newsletter signups and contact messages
"""
from typing import Any, Dict, List, Optional

from storefront.core.database import get_db_connection_dict
from storefront.domain.customer import ContactMessageCreate, Customer

CUSTOMER_COLUMNS = """
    id, tenant_id, email, first_name, last_name, phone, accepts_marketing,
    status, orders_count, tags, created_at, updated_at
"""


class CustomerRepository:

    @staticmethod
    def _map_row(row: dict) -> Customer:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        data['accepts_marketing'] = bool(data.get('accepts_marketing'))
        data['status'] = data.get('status') or 'active'
        data['orders_count'] = data.get('orders_count') or 0
        data['tags'] = list(data.get('tags') or [])
        return Customer(**data)

    def find_by_ids(self, tenant_id: str, customer_ids: List[str]) -> List[Customer]:
        if not customer_ids:
            return []

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM customers
                WHERE tenant_id = %s AND id::text = ANY(%s)
                ORDER BY created_at DESC
            """, (tenant_id, list(customer_ids)))

            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_all(self, tenant_id: str, limit: int = 1000, offset: int = 0) -> List[Customer]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM customers
                WHERE tenant_id = %s
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, (tenant_id, limit, offset))

            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def subscribe_newsletter(self, tenant_id: str, email: str) -> Customer:
        """Create the customer if new, and opt them in to marketing either way"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO customers (tenant_id, email, accepts_marketing)
                VALUES (%s, %s, true)
                ON CONFLICT (tenant_id, email) DO UPDATE SET
                    accepts_marketing = true,
                    updated_at = NOW()
                RETURNING {CUSTOMER_COLUMNS}
            """, (tenant_id, email.strip().lower()))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_status(self, tenant_id: str, customer_id: str, status: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE customers
                SET status = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (status, tenant_id, customer_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def add_tag(self, tenant_id: str, customer_id: str, tag: str) -> bool:
        """Append a tag unless the customer already carries it"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE customers
                SET tags = CASE
                        WHEN COALESCE(tags, '[]'::jsonb) @> to_jsonb(ARRAY[%s::text]) THEN tags
                        ELSE COALESCE(tags, '[]'::jsonb) || to_jsonb(ARRAY[%s::text])
                    END,
                    updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tag, tag, tenant_id, customer_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, customer_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM customers
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, customer_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def create_contact_message(self, tenant_id: str, data: ContactMessageCreate) -> Dict[str, Any]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO contact_messages (tenant_id, name, email, subject, message)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, created_at
            """, (tenant_id, data.name, data.email, data.subject, data.message))

            row = cursor.fetchone()
            conn.commit()
            return {'id': str(row['id']), 'created_at': row['created_at']}

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_contact_messages(self, tenant_id: str, unread_only: bool = False) -> List[Dict[str, Any]]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            query = """
                SELECT id, name, email, subject, message, is_read, created_at
                FROM contact_messages
                WHERE tenant_id = %s
            """
            if unread_only:
                query += " AND is_read = false"
            query += " ORDER BY created_at DESC"

            cursor.execute(query, (tenant_id,))

            messages = []
            for row in cursor.fetchall():
                message = dict(row)
                message['id'] = str(message['id'])
                messages.append(message)
            return messages

        finally:
            cursor.close()
            conn.close()
