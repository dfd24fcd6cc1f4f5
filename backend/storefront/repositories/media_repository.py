"""
Media Repository - uploaded asset records for the media library
"""
from typing import List, Optional

from storefront.core.database import get_db_connection_dict
from storefront.domain.customer import MediaAsset

MEDIA_COLUMNS = "id, tenant_id, file_name, storage_path, url, mime_type, size_bytes, created_at"


class MediaRepository:

    @staticmethod
    def _map_row(row: dict) -> MediaAsset:
        data = dict(row)
        data['id'] = str(data['id'])
        data['tenant_id'] = str(data['tenant_id'])
        return MediaAsset(**data)

    def create(
        self,
        tenant_id: str,
        file_name: str,
        storage_path: str,
        url: str,
        mime_type: str,
        size_bytes: int
    ) -> MediaAsset:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO media_assets (tenant_id, file_name, storage_path, url, mime_type, size_bytes)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {MEDIA_COLUMNS}
            """, (tenant_id, file_name, storage_path, url, mime_type, size_bytes))

            row = cursor.fetchone()
            conn.commit()
            return self._map_row(row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_all(self, tenant_id: str, mime_prefix: Optional[str] = None,
                 limit: int = 100, offset: int = 0) -> List[MediaAsset]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            query = f"SELECT {MEDIA_COLUMNS} FROM media_assets WHERE tenant_id = %s"
            params = [tenant_id]

            if mime_prefix:
                query += " AND mime_type LIKE %s"
                params.append(f"{mime_prefix}%")

            query += " ORDER BY created_at DESC LIMIT %s OFFSET %s"
            params.extend([limit, offset])

            cursor.execute(query, params)
            return [self._map_row(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def delete(self, tenant_id: str, asset_id: str) -> Optional[str]:
        """Delete the record and return its storage path"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM media_assets
                WHERE tenant_id = %s AND id = %s
                RETURNING storage_path
            """, (tenant_id, asset_id))

            row = cursor.fetchone()
            conn.commit()
            return row['storage_path'] if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
