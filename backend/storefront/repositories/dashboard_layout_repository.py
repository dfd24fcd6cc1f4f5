"""
Dashboard Layout Repository

Invariant: at most one default layout per (tenant, user). Every write that
sets is_default first clears the flag on the user's other layouts, inside
the same transaction.
"""
from typing import List, Optional

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.domain.dashboard import (
    DashboardLayout, DashboardLayoutCreate, DashboardLayoutUpdate, LayoutPreferences,
)

LAYOUT_COLUMNS = """
    id, tenant_id, user_id, layout_name, widgets, columns, row_height, gap,
    is_default, created_at, updated_at
"""


class DashboardLayoutRepository:

    @staticmethod
    def _map_row(row: dict) -> DashboardLayout:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        data['widgets'] = data.get('widgets') or []
        return DashboardLayout(**data)

    @staticmethod
    def _clear_default(cursor, tenant_id: str, user_id: str, keep_id: Optional[str] = None):
        cursor.execute("""
            UPDATE dashboard_layouts
            SET is_default = false, updated_at = NOW()
            WHERE tenant_id = %s AND user_id = %s AND is_default = true
              AND (%s::uuid IS NULL OR id != %s::uuid)
        """, (tenant_id, user_id, keep_id, keep_id))

    @staticmethod
    def _widgets_json(widgets) -> Json:
        return Json([widget.model_dump() for widget in widgets])

    def create(self, tenant_id: str, user_id: str, data: DashboardLayoutCreate) -> DashboardLayout:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if data.is_default:
                self._clear_default(cursor, tenant_id, user_id)

            cursor.execute(f"""
                INSERT INTO dashboard_layouts (
                    tenant_id, user_id, layout_name, widgets, columns, row_height, gap, is_default
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {LAYOUT_COLUMNS}
            """, (
                tenant_id, user_id, data.layout_name, self._widgets_json(data.widgets),
                data.columns, data.row_height, data.gap, data.is_default,
            ))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def get_by_id(self, tenant_id: str, layout_id: str) -> Optional[DashboardLayout]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {LAYOUT_COLUMNS}
                FROM dashboard_layouts
                WHERE tenant_id = %s AND id = %s
            """, (tenant_id, layout_id))

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def get_by_user(self, tenant_id: str, user_id: str) -> List[DashboardLayout]:
        """User's layouts, most recently updated first"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {LAYOUT_COLUMNS}
                FROM dashboard_layouts
                WHERE tenant_id = %s AND user_id = %s
                ORDER BY updated_at DESC
            """, (tenant_id, user_id))

            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_default_for_user(self, tenant_id: str, user_id: str) -> Optional[DashboardLayout]:
        """The default layout, else the most recently updated one"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {LAYOUT_COLUMNS}
                FROM dashboard_layouts
                WHERE tenant_id = %s AND user_id = %s
                ORDER BY is_default DESC, updated_at DESC
                LIMIT 1
            """, (tenant_id, user_id))

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def update(
        self,
        tenant_id: str,
        user_id: str,
        layout_id: str,
        data: DashboardLayoutUpdate
    ) -> Optional[DashboardLayout]:
        updates = data.model_dump(exclude_unset=True)
        if 'widgets' in updates:
            updates['widgets'] = self._widgets_json(data.widgets or [])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if updates.get('is_default'):
                self._clear_default(cursor, tenant_id, user_id, keep_id=layout_id)

            set_parts = [f"{field} = %s" for field in updates]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE dashboard_layouts
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND user_id = %s AND id = %s
                RETURNING {LAYOUT_COLUMNS}
            """, list(updates.values()) + [tenant_id, user_id, layout_id])

            row = cursor.fetchone()
            if not row:
                conn.rollback()
                return None

            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, user_id: str, layout_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM dashboard_layouts
                WHERE tenant_id = %s AND user_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, user_id, layout_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def save_layout_preferences(self, tenant_id: str, user_id: str, prefs: LayoutPreferences) -> DashboardLayout:
        """Overwrite the user's default layout, creating one named "Default" if needed"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM dashboard_layouts
                WHERE tenant_id = %s AND user_id = %s AND is_default = true
                LIMIT 1
            """, (tenant_id, user_id))
            existing = cursor.fetchone()

            if existing:
                cursor.execute(f"""
                    UPDATE dashboard_layouts
                    SET widgets = %s, columns = %s, row_height = %s, gap = %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING {LAYOUT_COLUMNS}
                """, (
                    self._widgets_json(prefs.widgets), prefs.columns, prefs.row_height,
                    prefs.gap, existing['id'],
                ))
            else:
                cursor.execute(f"""
                    INSERT INTO dashboard_layouts (
                        tenant_id, user_id, layout_name, widgets, columns, row_height, gap, is_default
                    )
                    VALUES (%s, %s, 'Default', %s, %s, %s, %s, true)
                    RETURNING {LAYOUT_COLUMNS}
                """, (
                    tenant_id, user_id, self._widgets_json(prefs.widgets),
                    prefs.columns, prefs.row_height, prefs.gap,
                ))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def set_default(self, tenant_id: str, user_id: str, layout_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            self._clear_default(cursor, tenant_id, user_id)
            cursor.execute("""
                UPDATE dashboard_layouts
                SET is_default = true, updated_at = NOW()
                WHERE tenant_id = %s AND user_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, user_id, layout_id))

            if not cursor.fetchone():
                conn.rollback()
                return False

            conn.commit()
            return True

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def duplicate(self, tenant_id: str, user_id: str, layout_id: str, new_name: str) -> Optional[DashboardLayout]:
        """Copy a layout under a new name; the copy is never the default"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO dashboard_layouts (
                    tenant_id, user_id, layout_name, widgets, columns, row_height, gap, is_default
                )
                SELECT tenant_id, user_id, %s, widgets, columns, row_height, gap, false
                FROM dashboard_layouts
                WHERE tenant_id = %s AND user_id = %s AND id = %s
                RETURNING {LAYOUT_COLUMNS}
            """, (new_name, tenant_id, user_id, layout_id))

            row = cursor.fetchone()
            if not row:
                conn.rollback()
                return None

            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
