from datetime import datetime
from typing import List

from pydantic import BaseModel


class StoredFile(BaseModel):
    id: str
    name: str
    key: str
    size: int
    mime_type: str
    uploader_id: str
    created_at: datetime


class FilePage(BaseModel):
    files: List[StoredFile]
    total: int
