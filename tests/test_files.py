"""Tests for upload validation, FileService, the S3 client and /files routes."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from app.files.entity.file import FilePage, StoredFile
from app.files.service.file_service import MAX_FILE_SIZE, FileService, validate_upload
from pkg.s3_client.client import S3Client, S3Config, StorageConfigurationError

from conftest import make_timestamp


def _stored(**overrides) -> StoredFile:
    fields = {
        "id": "file-1",
        "name": "report.pdf",
        "key": "user-1/abc.pdf",
        "size": 10,
        "mime_type": "application/pdf",
        "uploader_id": "user-1",
        "created_at": make_timestamp(),
    }
    fields.update(overrides)
    return StoredFile(**fields)


@pytest.fixture
def storage():
    s3 = MagicMock()
    s3.is_enabled = True
    s3.upload = AsyncMock(return_value={"key": "k"})
    s3.download_url = AsyncMock(return_value="https://bucket.example/signed")
    return s3


@pytest.fixture
def repo():
    repository = AsyncMock()
    repository.create_file.side_effect = lambda **kw: _stored(**kw)
    repository.get_file.return_value = _stored()
    return repository


@pytest.fixture
def service(repo, storage, logger):
    return FileService(repo, storage, logger)


class TestValidateUpload:
    def test_oversize(self):
        with pytest.raises(HTTPException) as exc_info:
            validate_upload("a.pdf", MAX_FILE_SIZE + 1, "application/pdf")

        assert exc_info.value.detail == "File size exceeds maximum limit of 50MB"

    def test_type_not_allowed(self):
        with pytest.raises(HTTPException):
            validate_upload("run.exe", 10, "application/x-msdownload")

    def test_extension_required(self):
        with pytest.raises(HTTPException) as exc_info:
            validate_upload("README", 10, "text/plain")

        assert exc_info.value.detail == "File must have an extension"

    def test_name_too_long(self):
        with pytest.raises(HTTPException) as exc_info:
            validate_upload("a" * 252 + ".txt", 10, "text/plain")

        assert exc_info.value.detail == "File name too long"

    def test_returns_lowercase_extension(self):
        assert validate_upload("Scan.PDF", 10, "application/pdf") == "pdf"


class TestFileService:
    async def test_upload_then_record(self, service, repo, storage):
        stored, url = await service.upload("report.pdf", b"%PDF-1.4", "application/pdf", "user-1")

        key = storage.upload.await_args.args[0]
        assert key.startswith("user-1/") and key.endswith(".pdf")
        assert repo.create_file.await_args.kwargs["key"] == key
        assert stored.size == 8
        assert url == "https://bucket.example/signed"

    async def test_storage_not_configured(self, service, storage, repo):
        storage.is_enabled = False

        with pytest.raises(HTTPException) as exc_info:
            await service.upload("report.pdf", b"x", "application/pdf", "user-1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "File storage not configured"
        repo.create_file.assert_not_awaited()

    async def test_other_users_file_is_forbidden(self, service, repo):
        repo.get_file.return_value = _stored(uploader_id="someone-else")

        with pytest.raises(HTTPException) as exc_info:
            await service.get_with_url("file-1", "user-1")

        assert exc_info.value.status_code == 403

    async def test_missing_file_is_404(self, service, repo):
        repo.get_file.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await service.get_with_url("file-1", "user-1")

        assert exc_info.value.status_code == 404


class TestS3Client:
    async def test_unconfigured_client_refuses_upload(self, logger):
        client = S3Client(S3Config(bucket=None), logger)

        with pytest.raises(StorageConfigurationError):
            await client.upload("k", b"x", "text/plain")

    async def test_expiry_bounds(self, logger):
        client = S3Client(S3Config(bucket="b", access_key_id="id", secret_access_key="secret"), logger)

        with pytest.raises(ValueError):
            await client.download_url("k", expires_in=30)

    async def test_put_object_is_encrypted(self, logger):
        client = S3Client(S3Config(bucket="b", access_key_id="id", secret_access_key="secret"), logger)
        boto_client = MagicMock()
        boto_client.put_object.return_value = {"ETag": '"abc"'}

        with patch("pkg.s3_client.client.boto3.client", return_value=boto_client):
            result = await client.upload("user-1/x.txt", b"hi", "text/plain")

        assert result == {"key": "user-1/x.txt", "etag": "abc", "size": 2}
        assert boto_client.put_object.call_args.kwargs["ServerSideEncryption"] == "AES256"


class TestFileRoutes:
    @pytest.fixture(autouse=True)
    def wire(self, app, service):
        app.state.file_service = service

    def test_upload(self, client, storage):
        response = client.post("/files", files={"file": ("notes.txt", b"hello", "text/plain")})

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["file"]["name"] == "notes.txt"
        assert data["download_url"] == "https://bucket.example/signed"

    def test_disallowed_type(self, client):
        response = client.post("/files", files={"file": ("a.html", b"<p>", "text/html")})

        assert response.status_code == 400

    def test_list_is_paginated(self, client, repo):
        repo.list_files.return_value = FilePage(files=[_stored()], total=45)

        response = client.get("/files", params={"page": 2, "limit": 500})

        assert response.json()["data"]["pagination"] == {"page": 2, "limit": 100, "total": 45, "pages": 1}
        repo.list_files.assert_awaited_once_with("user-1", offset=100, limit=100)

    def test_get_returns_download_url(self, client, storage):
        response = client.get("/files/file-1", params={"expires_in": 600})

        assert response.status_code == 200
        storage.download_url.assert_awaited_with("user-1/abc.pdf", 600)
