"""
Audit Logger
Records who changed what in the merchant dashboard

Audit writes are side effects: a failure is logged and swallowed so the
request that triggered it still succeeds.
"""
import logging
from typing import Any, Dict, Optional

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict

logger = logging.getLogger(__name__)


class AuditLogger:

    def log(
        self,
        tenant_id: str,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> bool:
        conn = None
        cursor = None

        try:
            conn = get_db_connection_dict()
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO audit_logs (
                    tenant_id, user_id, action, entity_type, entity_id, old_values, new_values
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
            """, (
                tenant_id, user_id, action, entity_type, entity_id,
                Json(old_values) if old_values is not None else None,
                Json(new_values) if new_values is not None else None,
            ))
            conn.commit()
            return True

        except Exception as e:
            logger.error(f"Audit log failed ({action} {entity_type} {entity_id}): {e}")
            if conn is not None:
                conn.rollback()
            return False

        finally:
            if cursor is not None:
                cursor.close()
            if conn is not None:
                conn.close()

    def log_create(self, tenant_id: str, entity_type: str, entity_id: str,
                   new_values: Optional[dict] = None, user_id: Optional[str] = None) -> bool:
        return self.log(tenant_id, "create", entity_type, entity_id, None, new_values, user_id)

    def log_update(self, tenant_id: str, entity_type: str, entity_id: str,
                   old_values: Optional[dict] = None, new_values: Optional[dict] = None,
                   user_id: Optional[str] = None) -> bool:
        return self.log(tenant_id, "update", entity_type, entity_id, old_values, new_values, user_id)

    def log_delete(self, tenant_id: str, entity_type: str, entity_id: str,
                   old_values: Optional[dict] = None, user_id: Optional[str] = None) -> bool:
        return self.log(tenant_id, "delete", entity_type, entity_id, old_values, None, user_id)

    def log_checkout(self, tenant_id: str, order_id: str, details: Optional[dict] = None) -> bool:
        return self.log(tenant_id, "checkout", "order", order_id, None, details)


# Singleton instance for use across the application
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get or create the AuditLogger singleton"""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger
