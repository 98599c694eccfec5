from typing import Optional

from sqlalchemy import func
from sqlalchemy.future import select

from app.core.logger import get_logger
from app.files.entity.file import FilePage, StoredFile
from app.files.repository.sql_schema.file import FileModel
from app.files.service.file_service import IFileRepository
from pkg.db_util.postgres_conn import PostgresConnection

logger = get_logger(__name__)


def _to_file(f: FileModel) -> StoredFile:
    return StoredFile(
        id=f.id,
        name=f.name,
        key=f.key,
        size=f.size,
        mime_type=f.mime_type,
        uploader_id=f.uploader_id,
        created_at=f.created_at,
    )


class FileRepository(IFileRepository):
    def __init__(self, postgres: PostgresConnection):
        self.postgres = postgres
        self.logger = logger

    async def create_file(self, name: str, key: str, size: int, mime_type: str, uploader_id: str) -> StoredFile:
        async with self.postgres.get_session() as session:
            row = FileModel(name=name, key=key, size=size, mime_type=mime_type, uploader_id=uploader_id)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _to_file(row)

    async def get_file(self, file_id: str) -> Optional[StoredFile]:
        async with self.postgres.get_session() as session:
            result = await session.execute(select(FileModel).where(FileModel.id == file_id))
            row = result.scalar_one_or_none()
            return _to_file(row) if row else None

    async def list_files(self, uploader_id: str, offset: int, limit: int) -> FilePage:
        async with self.postgres.get_session() as session:
            total = await session.scalar(
                select(func.count(FileModel.id)).where(FileModel.uploader_id == uploader_id)
            )
            result = await session.execute(
                select(FileModel)
                .where(FileModel.uploader_id == uploader_id)
                .order_by(FileModel.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return FilePage(files=[_to_file(f) for f in result.scalars().all()], total=total or 0)
