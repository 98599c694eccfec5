from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status

from app.auth.api.dependencies import get_current_user
from app.auth.api.dto import BaseResponse
from app.core.logger import get_logger
from app.files.api.handler import FileHandler
from pkg.s3_client.client import DEFAULT_URL_EXPIRY_S

file_router = APIRouter(prefix="/files", tags=["Files"])
logger = get_logger("FileRouter")


def get_file_handler(request: Request) -> FileHandler:
    file_service = getattr(request.app.state, "file_service", None)
    if file_service is None:
        raise HTTPException(status_code=503, detail="File service not available")
    return FileHandler(file_service, getattr(request.app.state, "logger", None) or logger)


@file_router.post("", response_model=BaseResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    handler: FileHandler = Depends(get_file_handler),
):
    """Upload a file (max 50MB) and get a download URL back."""
    return await handler.upload(file, current_user["user_id"])


@file_router.get("", response_model=BaseResponse)
async def list_files(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    current_user: dict = Depends(get_current_user),
    handler: FileHandler = Depends(get_file_handler),
):
    """Your uploads, newest first."""
    return await handler.list_files(current_user["user_id"], page, limit)


@file_router.get("/{file_id}", response_model=BaseResponse)
async def get_file(
    file_id: str,
    expires_in: int = Query(default=DEFAULT_URL_EXPIRY_S),
    current_user: dict = Depends(get_current_user),
    handler: FileHandler = Depends(get_file_handler),
):
    return await handler.get_file(file_id, current_user["user_id"], expires_in)
