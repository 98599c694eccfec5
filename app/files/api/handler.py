import logging
import math
from typing import Any

from fastapi import HTTPException, UploadFile

from app.files.service.file_service import MAX_FILE_SIZE, FileService


class FileHandler:
    def __init__(self, file_service: FileService, logger: logging.Logger):
        self.file_service = file_service
        self.logger = logger

    async def upload(self, file: UploadFile, user_id: str) -> dict[str, Any]:
        try:
            # Read one byte past the limit so oversize uploads are rejected without buffering them whole
            body = await file.read(MAX_FILE_SIZE + 1)
            stored, download_url = await self.file_service.upload(file.filename, body, file.content_type, user_id)
            return {
                "status": True,
                "message": "File uploaded successfully",
                "data": {"file": stored.model_dump(mode="json"), "download_url": download_url},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error uploading file: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to upload file")
        finally:
            await file.close()

    async def get_file(self, file_id: str, user_id: str, expires_in: int) -> dict[str, Any]:
        try:
            stored, download_url = await self.file_service.get_with_url(file_id, user_id, expires_in)
            return {
                "status": True,
                "message": "File fetched successfully",
                "data": {"file": stored.model_dump(mode="json"), "download_url": download_url},
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error fetching file {file_id}: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch file")

    async def list_files(self, user_id: str, page: int, limit: int) -> dict[str, Any]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        try:
            result = await self.file_service.list_files(user_id, page, limit)
            return {
                "status": True,
                "message": "Files fetched successfully",
                "data": {
                    "files": [f.model_dump(mode="json") for f in result.files],
                    "pagination": {
                        "page": page,
                        "limit": limit,
                        "total": result.total,
                        "pages": math.ceil(result.total / limit),
                    },
                },
            }
        except HTTPException:
            raise
        except Exception as e:
            self.logger.error(f"Error listing files: {e!s}")
            raise HTTPException(status_code=500, detail="Failed to fetch files")
