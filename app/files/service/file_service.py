from abc import ABC, abstractmethod
from typing import Optional
import logging
import uuid

from fastapi import HTTPException

from app.files.entity.file import FilePage, StoredFile
from pkg.s3_client.client import DEFAULT_URL_EXPIRY_S, S3Client, StorageConfigurationError, StorageError

MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "text/csv",
    "application/json",
    "application/xml",
    "text/markdown",
    "application/zip",
    "application/x-zip-compressed",
}


class IFileRepository(ABC):
    @abstractmethod
    async def create_file(self, name: str, key: str, size: int, mime_type: str, uploader_id: str) -> StoredFile:
        pass

    @abstractmethod
    async def get_file(self, file_id: str) -> Optional[StoredFile]:
        pass

    @abstractmethod
    async def list_files(self, uploader_id: str, offset: int, limit: int) -> FilePage:
        pass


def file_extension(name: str) -> Optional[str]:
    if "." not in name:
        return None
    ext = name.rsplit(".", 1)[1].lower()
    return ext or None


def validate_upload(name: Optional[str], size: int, mime_type: Optional[str]) -> str:
    """Check an upload against size, type and name rules; returns the file extension."""
    if size > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds maximum limit of {MAX_FILE_SIZE // (1024 * 1024)}MB",
        )
    if mime_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(status_code=400, detail="File type not allowed")
    if not name:
        raise HTTPException(status_code=400, detail="Invalid file name")
    if len(name) > MAX_FILE_NAME_LENGTH:
        raise HTTPException(status_code=400, detail="File name too long")
    ext = file_extension(name)
    if not ext:
        raise HTTPException(status_code=400, detail="File must have an extension")
    return ext


class FileService:
    def __init__(self, file_repository: IFileRepository, storage: S3Client, logger: logging.Logger):
        self.file_repository = file_repository
        self.storage = storage
        self.logger = logger

    async def upload(self, name: str, body: bytes, mime_type: str, uploader_id: str) -> tuple[StoredFile, str]:
        ext = validate_upload(name, len(body), mime_type)
        if not self.storage.is_enabled:
            raise HTTPException(status_code=500, detail="File storage not configured")

        key = f"{uploader_id}/{uuid.uuid4()}.{ext}"
        try:
            await self.storage.upload(key, body, mime_type)
            stored = await self.file_repository.create_file(
                name=name, key=key, size=len(body), mime_type=mime_type, uploader_id=uploader_id
            )
            download_url = await self.storage.download_url(key, DEFAULT_URL_EXPIRY_S)
        except StorageConfigurationError:
            raise HTTPException(status_code=500, detail="File storage not configured")
        except StorageError as e:
            self.logger.error(f"File upload failed for user_id={uploader_id}: {e!s}")
            raise HTTPException(status_code=502, detail="Failed to upload file")
        self.logger.info(f"File uploaded: {stored.id} key={key}")
        return stored, download_url

    async def get_with_url(self, file_id: str, user_id: str, expires_in: int = DEFAULT_URL_EXPIRY_S) -> tuple[StoredFile, str]:
        stored = await self.file_repository.get_file(file_id)
        if stored is None:
            raise HTTPException(status_code=404, detail="File not found")
        if stored.uploader_id != user_id:
            raise HTTPException(status_code=403, detail="Access denied")
        try:
            url = await self.storage.download_url(stored.key, expires_in)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StorageConfigurationError:
            raise HTTPException(status_code=500, detail="File storage not configured")
        except StorageError as e:
            self.logger.error(f"Failed to generate download URL for file {file_id}: {e!s}")
            raise HTTPException(status_code=502, detail="Failed to generate download URL")
        return stored, url

    async def list_files(self, user_id: str, page: int, limit: int) -> FilePage:
        return await self.file_repository.list_files(user_id, offset=(page - 1) * limit, limit=limit)
