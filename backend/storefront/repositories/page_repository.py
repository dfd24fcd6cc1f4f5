"""
Page Repository - store pages, page versions, theme and block templates

Blocks are stored as a JSONB array on store_pages. Saving new blocks
snapshots the previous ones into store_page_versions inside the same
transaction.
"""
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from storefront.core.database import get_db_connection_dict
from storefront.domain.page import (
    BlockTemplate, DEFAULT_THEME_COLORS, DEFAULT_THEME_LAYOUT, DEFAULT_THEME_TYPOGRAPHY,
    PageVersion, StorePage, StoreTheme,
)

PAGE_COLUMNS = """
    id, tenant_id, title, slug, page_type, status, is_homepage, meta_title,
    meta_description, blocks, settings, published_at, created_at, updated_at
"""

VERSION_COLUMNS = """
    id, page_id, tenant_id, version_number, blocks, settings, created_by, created_at
"""

UPDATABLE_FIELDS = {
    'title', 'slug', 'page_type', 'status', 'is_homepage', 'meta_title',
    'meta_description', 'blocks', 'settings', 'published_at',
}

JSON_FIELDS = {'blocks', 'settings'}


class PageRepository:
    """Repository for store pages and their versions"""

    @staticmethod
    def _map_row(row: dict) -> StorePage:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        data['blocks'] = data.get('blocks') or []
        data['settings'] = data.get('settings') or {}
        return StorePage(**data)

    @staticmethod
    def _map_version(row: dict) -> PageVersion:
        data = dict(row)
        data['id'] = str(data['id'])
        data['page_id'] = str(data['page_id'])
        data['tenant_id'] = str(data['tenant_id'])
        data['settings'] = data.get('settings') or {}
        return PageVersion(**data)

    @staticmethod
    def _db_value(field: str, value):
        if field in JSON_FIELDS:
            return Json(value)
        return value

    def _fetch_one(self, where: str, params: tuple) -> Optional[StorePage]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PAGE_COLUMNS}
                FROM store_pages
                WHERE {where}
                LIMIT 1
            """, params)

            row = cursor.fetchone()
            return self._map_row(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, tenant_id: str, page_id: str) -> Optional[StorePage]:
        return self._fetch_one("tenant_id = %s AND id = %s", (tenant_id, page_id))

    def find_by_slug(self, tenant_id: str, slug: str) -> Optional[StorePage]:
        return self._fetch_one("tenant_id = %s AND slug = %s", (tenant_id, slug))

    def find_homepage(self, tenant_id: str) -> Optional[StorePage]:
        return self._fetch_one("tenant_id = %s AND is_homepage = true", (tenant_id,))

    def find_all(self, tenant_id: str, status: Optional[str] = None) -> List[StorePage]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            query = f"SELECT {PAGE_COLUMNS} FROM store_pages WHERE tenant_id = %s"
            params: List[Any] = [tenant_id]

            if status:
                query += " AND status = %s"
                params.append(status)

            query += " ORDER BY is_homepage DESC, updated_at DESC"

            cursor.execute(query, params)
            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_slugs(self, tenant_id: str, base_slug: str) -> List[str]:
        """Slugs equal to base_slug or starting with 'base_slug-'"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT slug FROM store_pages
                WHERE tenant_id = %s AND (slug = %s OR slug LIKE %s)
            """, (tenant_id, base_slug, f"{base_slug}-%"))

            return [row['slug'] for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create(self, tenant_id: str, values: Dict[str, Any]) -> StorePage:
        fields = [f for f in values if f in UPDATABLE_FIELDS]

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if values.get('is_homepage'):
                self._clear_homepage(cursor, tenant_id)

            cursor.execute(f"""
                INSERT INTO store_pages (tenant_id, {", ".join(fields)})
                VALUES (%s, {", ".join(["%s"] * len(fields))})
                RETURNING {PAGE_COLUMNS}
            """, [tenant_id] + [self._db_value(f, values[f]) for f in fields])

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    @staticmethod
    def _clear_homepage(cursor, tenant_id: str, keep_id: Optional[str] = None):
        cursor.execute("""
            UPDATE store_pages
            SET is_homepage = false, updated_at = NOW()
            WHERE tenant_id = %s AND is_homepage = true
              AND (%s::uuid IS NULL OR id != %s::uuid)
        """, (tenant_id, keep_id, keep_id))

    def update(
        self,
        tenant_id: str,
        page_id: str,
        updates: Dict[str, Any],
        version_limit: int = 50,
        created_by: Optional[str] = None
    ) -> Optional[StorePage]:
        """
        Apply updates to a page

        When blocks are part of the update the blocks currently stored are
        saved as the next version first, and versions that fall outside
        the last `version_limit` are pruned.
        """
        fields = [f for f in updates if f in UPDATABLE_FIELDS]

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT blocks, settings FROM store_pages
                WHERE tenant_id = %s AND id = %s
                FOR UPDATE
            """, (tenant_id, page_id))
            current = cursor.fetchone()

            if not current:
                conn.rollback()
                return None

            if 'blocks' in updates:
                cursor.execute("""
                    SELECT COALESCE(MAX(version_number), 0) AS latest
                    FROM store_page_versions
                    WHERE page_id = %s
                """, (page_id,))
                next_version = cursor.fetchone()['latest'] + 1

                cursor.execute("""
                    INSERT INTO store_page_versions (
                        page_id, tenant_id, version_number, blocks, settings, created_by
                    )
                    VALUES (%s, %s, %s, %s, %s, %s)
                """, (
                    page_id, tenant_id, next_version,
                    Json(current['blocks'] or []), Json(current['settings'] or {}), created_by,
                ))

                cursor.execute("""
                    DELETE FROM store_page_versions
                    WHERE page_id = %s AND version_number <= %s
                """, (page_id, next_version - version_limit))

            if updates.get('is_homepage'):
                self._clear_homepage(cursor, tenant_id, keep_id=page_id)

            set_parts = [f"{f} = %s" for f in fields]
            set_parts.append("updated_at = NOW()")

            cursor.execute(f"""
                UPDATE store_pages
                SET {", ".join(set_parts)}
                WHERE tenant_id = %s AND id = %s
                RETURNING {PAGE_COLUMNS}
            """, [self._db_value(f, updates[f]) for f in fields] + [tenant_id, page_id])

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, page_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM store_pages
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, page_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    # ========================================================================
    # Versions
    # ========================================================================

    def find_versions(self, tenant_id: str, page_id: str, limit: int = 20) -> List[PageVersion]:
        """Newest first"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {VERSION_COLUMNS}
                FROM store_page_versions
                WHERE tenant_id = %s AND page_id = %s
                ORDER BY version_number DESC
                LIMIT %s
            """, (tenant_id, page_id, limit))

            return [self._map_version(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_version(self, tenant_id: str, page_id: str, version_number: int) -> Optional[PageVersion]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {VERSION_COLUMNS}
                FROM store_page_versions
                WHERE tenant_id = %s AND page_id = %s AND version_number = %s
            """, (tenant_id, page_id, version_number))

            row = cursor.fetchone()
            return self._map_version(row) if row else None

        finally:
            cursor.close()
            conn.close()

    # ========================================================================
    # Theme
    # ========================================================================

    def find_theme(self, tenant_id: str) -> Optional[StoreTheme]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, tenant_id, theme_name, colors, typography, layout, custom_css, updated_at
                FROM store_themes
                WHERE tenant_id = %s
            """, (tenant_id,))

            row = cursor.fetchone()
            if not row:
                return None

            return StoreTheme(
                id=str(row['id']),
                tenant_id=str(row['tenant_id']),
                theme_name=row.get('theme_name') or 'default',
                colors=row.get('colors') or dict(DEFAULT_THEME_COLORS),
                typography=row.get('typography') or dict(DEFAULT_THEME_TYPOGRAPHY),
                layout=row.get('layout') or dict(DEFAULT_THEME_LAYOUT),
                custom_css=row.get('custom_css'),
                updated_at=row.get('updated_at'),
            )

        finally:
            cursor.close()
            conn.close()

    def upsert_theme(self, theme: StoreTheme) -> StoreTheme:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO store_themes (tenant_id, theme_name, colors, typography, layout, custom_css)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (tenant_id) DO UPDATE SET
                    theme_name = EXCLUDED.theme_name,
                    colors = EXCLUDED.colors,
                    typography = EXCLUDED.typography,
                    layout = EXCLUDED.layout,
                    custom_css = EXCLUDED.custom_css,
                    updated_at = NOW()
                RETURNING id, updated_at
            """, (
                theme.tenant_id, theme.theme_name, Json(theme.colors),
                Json(theme.typography), Json(theme.layout), theme.custom_css,
            ))

            row = cursor.fetchone()
            conn.commit()
            return theme.model_copy(update={'id': str(row['id']), 'updated_at': row['updated_at']})

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    # ========================================================================
    # Block templates
    # ========================================================================

    @staticmethod
    def _map_template(row: dict) -> BlockTemplate:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        return BlockTemplate(**data)

    def find_templates(self, tenant_id: str, block_type: Optional[str] = None) -> List[BlockTemplate]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            query = """
                SELECT id, tenant_id, name, description, block_type, block_data, thumbnail_url, created_at
                FROM store_block_templates
                WHERE tenant_id = %s
            """
            params: List[Any] = [tenant_id]

            if block_type:
                query += " AND block_type = %s"
                params.append(block_type)

            query += " ORDER BY created_at DESC"

            cursor.execute(query, params)
            return [self._map_template(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create_template(
        self,
        tenant_id: str,
        name: str,
        description: Optional[str],
        block_type: str,
        block_data: Dict[str, Any]
    ) -> BlockTemplate:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO store_block_templates (tenant_id, name, description, block_type, block_data)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, tenant_id, name, description, block_type, block_data, thumbnail_url, created_at
            """, (tenant_id, name, description, block_type, Json(block_data)))

            row = cursor.fetchone()
            conn.commit()
            return self._map_template(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_template(self, tenant_id: str, template_id: str) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM store_block_templates
                WHERE tenant_id = %s AND id = %s
                RETURNING id
            """, (tenant_id, template_id))

            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
