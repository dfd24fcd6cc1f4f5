"""
Unit tests for MediaService (Supabase storage client mocked)
"""
from unittest.mock import MagicMock

import pytest

from storefront.core.errors import AppError, NotFoundError, ValidationError
from storefront.services.media_service import MediaService, build_storage_path, safe_filename


@pytest.fixture
def storage_client():
    client = MagicMock()
    client.storage.from_.return_value.get_public_url.return_value = "https://cdn.test/media/file.png"
    return client


@pytest.fixture
def repo():
    return MagicMock()


@pytest.fixture
def service(repo, storage_client):
    return MediaService(repository=repo, client_factory=lambda: storage_client,
                        bucket="media", max_bytes=1024)


def test_safe_filename():
    assert safe_filename("../../etc/My Photo (1).PNG") == "My-Photo-1-.PNG"
    assert safe_filename("C:\\Users\\me\\pic.jpg") == "pic.jpg"
    assert safe_filename("") == "upload"


def test_storage_path_is_tenant_scoped():
    path = build_storage_path("tenant-1", "pic.jpg")

    assert path.startswith("tenant-1/")
    assert path.endswith("-pic.jpg")


@pytest.mark.parametrize("content_type,size,code", [
    ("application/pdf", 10, "UNSUPPORTED_MEDIA_TYPE"),
    (None, 10, "UNSUPPORTED_MEDIA_TYPE"),
    ("image/png", 0, "EMPTY_FILE"),
    ("image/png", 2048, "FILE_TOO_LARGE"),
])
def test_validate_upload(service, content_type, size, code):
    with pytest.raises(ValidationError) as exc_info:
        service.validate_upload("file", content_type, size)

    assert exc_info.value.code == code


def test_upload_stores_file_and_row(service, repo, storage_client):
    # Act
    service.upload("t", "logo.png", "image/png", b"\x89PNG")

    # Assert
    bucket = storage_client.storage.from_.return_value
    storage_client.storage.from_.assert_called_with("media")
    path = bucket.upload.call_args[0][0]
    assert path.startswith("t/")
    kwargs = repo.create.call_args.kwargs
    assert kwargs['url'] == "https://cdn.test/media/file.png"
    assert kwargs['size_bytes'] == 4
    assert kwargs['storage_path'] == path


def test_storage_failure_is_upload_failed(service, repo, storage_client):
    storage_client.storage.from_.return_value.upload.side_effect = Exception("bucket missing")

    with pytest.raises(AppError) as exc_info:
        service.upload("t", "logo.png", "image/png", b"data")

    assert exc_info.value.code == "UPLOAD_FAILED"
    assert exc_info.value.status_code == 502
    repo.create.assert_not_called()


def test_list_assets_by_kind(service, repo):
    service.list_assets("t", kind="video")

    assert repo.find_all.call_args.kwargs['mime_prefix'] == "video/"


def test_delete_missing_asset(service, repo):
    repo.delete.return_value = None

    with pytest.raises(NotFoundError):
        service.delete_asset("t", "asset-1")


def test_delete_survives_storage_error(service, repo, storage_client):
    repo.delete.return_value = "t/abc-logo.png"
    storage_client.storage.from_.return_value.remove.side_effect = Exception("timeout")

    assert service.delete_asset("t", "asset-1") is True
