"""
Media Service - uploads to the Supabase storage bucket

Files land under `<tenant_id>/<uuid>-<filename>` so tenants never share
a path, and a media_assets row records where each one lives.
"""
import logging
import re
import uuid
from typing import Callable, List, Optional

from supabase import Client

from storefront.core.config import settings
from storefront.core.database import get_supabase
from storefront.core.errors import AppError, NotFoundError, ValidationError
from storefront.domain.customer import MediaAsset
from storefront.repositories.media_repository import MediaRepository

logger = logging.getLogger(__name__)

ALLOWED_MIME_PREFIXES = ("image/", "video/")

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """Strip directories and characters that are awkward in storage paths"""
    name = (filename or "").replace("\\", "/").split("/")[-1]
    name = _UNSAFE_FILENAME.sub("-", name).strip("-.")
    return name or "upload"


def build_storage_path(tenant_id: str, filename: str) -> str:
    return f"{tenant_id}/{uuid.uuid4()}-{safe_filename(filename)}"


class MediaService:
    def __init__(
        self,
        repository: Optional[MediaRepository] = None,
        client_factory: Callable[[], Client] = get_supabase,
        bucket: Optional[str] = None,
        max_bytes: Optional[int] = None
    ):
        self.repository = repository or MediaRepository()
        self._client_factory = client_factory
        self._client: Optional[Client] = None
        self.bucket = bucket or settings.MEDIA_BUCKET
        self.max_bytes = max_bytes or settings.MEDIA_MAX_UPLOAD_BYTES

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def validate_upload(self, filename: str, content_type: Optional[str], size: int):
        if not content_type or not content_type.startswith(ALLOWED_MIME_PREFIXES):
            raise ValidationError(
                "Only image and video files can be uploaded",
                code="UNSUPPORTED_MEDIA_TYPE",
                details={"content_type": content_type, "filename": filename},
            )
        if size == 0:
            raise ValidationError("File is empty", code="EMPTY_FILE")
        if size > self.max_bytes:
            raise ValidationError(
                f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit",
                code="FILE_TOO_LARGE",
                details={"size": size, "max_bytes": self.max_bytes},
            )

    def upload(self, tenant_id: str, filename: str, content_type: str, content: bytes) -> MediaAsset:
        self.validate_upload(filename, content_type, len(content))
        path = build_storage_path(tenant_id, filename)

        try:
            storage = self.client.storage.from_(self.bucket)
            storage.upload(path, content, {"content-type": content_type})
            url = storage.get_public_url(path)
        except Exception as e:
            logger.error(f"Upload of {filename} for tenant {tenant_id} failed: {e}")
            raise AppError("Failed to upload file", code="UPLOAD_FAILED", status_code=502)

        asset = self.repository.create(
            tenant_id,
            file_name=safe_filename(filename),
            storage_path=path,
            url=url,
            mime_type=content_type,
            size_bytes=len(content),
        )
        logger.info(f"Uploaded {path} ({len(content)} bytes)")
        return asset

    def list_assets(self, tenant_id: str, kind: Optional[str] = None,
                    limit: int = 100, offset: int = 0) -> List[MediaAsset]:
        mime_prefix = {"image": "image/", "video": "video/"}.get(kind or "")
        return self.repository.find_all(tenant_id, mime_prefix=mime_prefix, limit=limit, offset=offset)

    def delete_asset(self, tenant_id: str, asset_id: str) -> bool:
        path = self.repository.delete(tenant_id, asset_id)
        if path is None:
            raise NotFoundError(f"Media asset {asset_id} not found", code="MEDIA_NOT_FOUND")

        try:
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as e:
            # the row is gone; an orphaned object is only wasted space
            logger.error(f"Failed to remove {path} from storage: {e}")
        return True


_media_service: Optional[MediaService] = None


def get_media_service() -> MediaService:
    global _media_service
    if _media_service is None:
        _media_service = MediaService()
    return _media_service
