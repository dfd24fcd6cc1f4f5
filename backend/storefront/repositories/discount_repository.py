"""
Discount Repository - Data Access Layer for sales, vouchers and voucher codes
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.core.errors import ConflictError
from storefront.domain.discount import Discount, DiscountInput, VoucherCode

DISCOUNT_COLUMNS = """
    id, tenant_id, name, description, kind, type, value, scope,
    apply_once_per_order, min_order_amount, min_checkout_items_quantity,
    usage_limit, used_count, apply_once_per_customer, only_for_staff, single_use,
    starts_at, ends_at, is_active,
    applicable_product_ids, applicable_collection_ids, applicable_category_ids,
    created_at, updated_at
"""

CODE_COLUMNS = """
    id, tenant_id, discount_id, code, status, used_count, usage_limit,
    is_manually_created, created_at, used_at
"""

JSON_FIELDS = ('applicable_product_ids', 'applicable_collection_ids', 'applicable_category_ids')


class DiscountRepository:
    """Repository for discounts (kind = sale | voucher) and their codes"""

    @staticmethod
    def _map_row(row: dict) -> Discount:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        data['used_count'] = data.get('used_count') or 0
        return Discount(**data)

    @staticmethod
    def _map_code(row: dict) -> VoucherCode:
        data = dict(row)
        for field in ('id', 'tenant_id', 'discount_id'):
            data[field] = str(data[field])
        data['used_count'] = data.get('used_count') or 0
        return VoucherCode(**data)

    @staticmethod
    def _write_values(data: DiscountInput) -> dict:
        values = data.model_dump()
        for field in JSON_FIELDS:
            values[field] = Json(values[field] or [])
        return values

    def find_by_id(self, tenant_id: str, discount_id: str) -> Optional[Discount]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {DISCOUNT_COLUMNS}
                FROM discounts
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, discount_id))

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        tenant_id: str,
        kind: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Discount], int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["tenant_id = %s"]
            params = [tenant_id]

            if kind:
                conditions.append("kind = %s")
                params.append(kind)

            if search:
                conditions.append("name ILIKE %s")
                params.append(f"%{search}%")

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM discounts
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {DISCOUNT_COLUMNS}
                FROM discounts
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def find_active_sales(self, tenant_id: str) -> List[Discount]:
        """Sales flagged active; the date window is checked by the caller"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {DISCOUNT_COLUMNS}
                FROM discounts
                WHERE tenant_id = %s AND kind = 'sale' AND is_active = true
            """, (tenant_id,))

            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create(self, tenant_id: str, kind: str, data: DiscountInput) -> Discount:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            values = self._write_values(data)
            columns = ", ".join(values.keys())
            placeholders = ", ".join(["%s"] * len(values))

            cursor.execute(f"""
                INSERT INTO discounts (tenant_id, kind, {columns})
                VALUES (%s, %s, {placeholders})
                RETURNING {DISCOUNT_COLUMNS}
            """, [tenant_id, kind] + list(values.values()))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, tenant_id: str, discount_id: str, data: DiscountInput) -> Optional[Discount]:
        """Replace the editable fields of a discount"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            values = self._write_values(data)
            set_parts = [f"{field} = %s" for field in values]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE discounts
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING {DISCOUNT_COLUMNS}
            """, list(values.values()) + [tenant_id, discount_id])

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def set_active(self, tenant_id: str, discount_id: str, is_active: bool) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE discounts
                SET is_active = %s, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (is_active, tenant_id, discount_id))

            updated = cursor.fetchone() is not None
            conn.commit()
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, discount_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM discounts
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, discount_id))

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
    # Voucher codes
    # ========================================

    def find_codes(self, tenant_id: str, discount_id: str) -> List[VoucherCode]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CODE_COLUMNS}
                FROM voucher_codes
                WHERE tenant_id = %s AND discount_id = %s
                ORDER BY created_at DESC
            """, (tenant_id, discount_id))

            return [self._map_code(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_code(self, tenant_id: str, code: str) -> Optional[VoucherCode]:
        """Look up a code; codes are stored upper-case"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CODE_COLUMNS}
                FROM voucher_codes
                WHERE tenant_id = %s AND code = %s
            """, (tenant_id, code.upper()))

            row = cursor.fetchone()
            return self._map_code(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_existing_codes(self, tenant_id: str) -> set:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT code FROM voucher_codes WHERE tenant_id = %s", (tenant_id,))
            return {row['code'] for row in cursor.fetchall()}

        finally:
            cursor.close()
            conn.close()

    def add_codes(
        self,
        tenant_id: str,
        discount_id: str,
        codes: List[str],
        is_manually_created: bool = False,
        usage_limit: Optional[int] = None
    ) -> List[VoucherCode]:
        """
        Insert voucher codes for a discount

        Raises:
            ConflictError: CODE_TAKEN if any code already exists for the tenant
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            upper_codes = [code.strip().upper() for code in codes if code.strip()]

            cursor.execute("""
                SELECT code FROM voucher_codes
                WHERE tenant_id = %s AND code = ANY(%s)
            """, (tenant_id, upper_codes))
            taken = [row['code'] for row in cursor.fetchall()]
            if taken:
                raise ConflictError(
                    "Some voucher codes already exist",
                    code="CODE_TAKEN",
                    details={"codes": taken},
                )

            created = []
            for code in upper_codes:
                cursor.execute(f"""
                    INSERT INTO voucher_codes (
                        tenant_id, discount_id, code, status, usage_limit, is_manually_created
                    )
                    VALUES (%s, %s, %s, 'active', %s, %s)
                    RETURNING {CODE_COLUMNS}
                """, (tenant_id, discount_id, code, usage_limit, is_manually_created))
                created.append(self._map_code(cursor.fetchone()))

            conn.commit()
            return created

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_code(self, tenant_id: str, code_id: str) -> bool:
        """
        Delete an unused voucher code

        Raises:
            ConflictError: CODE_IN_USE when the code has been redeemed
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, used_count FROM voucher_codes
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, code_id))
            row = cursor.fetchone()

            if not row:
                return False

            if (row['used_count'] or 0) > 0:
                raise ConflictError("Cannot delete a voucher code that has been used", code="CODE_IN_USE")

            cursor.execute("DELETE FROM voucher_codes WHERE id = %s", (code_id,))
            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    # ========================================
    # Usage
    # ========================================

    def count_customer_usage(self, tenant_id: str, discount_id: str, customer_id: str) -> int:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) as count
                FROM discount_usages
                WHERE tenant_id = %s AND discount_id = %s AND customer_id = %s
            """, (tenant_id, discount_id, customer_id))

            return int(cursor.fetchone()['count'])

        finally:
            cursor.close()
            conn.close()

    def record_usage(
        self,
        tenant_id: str,
        discount_id: str,
        order_id: Optional[str],
        discount_amount: Decimal,
        voucher_code_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None
    ) -> None:
        """Insert a usage row and bump the discount and code counters in one transaction"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO discount_usages (
                    tenant_id, discount_id, voucher_code_id, order_id,
                    customer_id, customer_email, discount_amount
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
            """, (
                tenant_id, discount_id, voucher_code_id, order_id,
                customer_id, customer_email, discount_amount,
            ))

            cursor.execute("""
                UPDATE discounts
                SET used_count = COALESCE(used_count, 0) + 1, updated_at = NOW()
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, discount_id))

            if voucher_code_id:
                cursor.execute("""
                    UPDATE voucher_codes
                    SET used_count = COALESCE(used_count, 0) + 1,
                        used_at = NOW(),
                        status = CASE
                            WHEN usage_limit IS NOT NULL AND COALESCE(used_count, 0) + 1 >= usage_limit
                            THEN 'used' ELSE status
                        END
                    WHERE tenant_id = %s AND id = %s
                """, (tenant_id, voucher_code_id))

            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
