from datetime import datetime
from sqlalchemy import Column, String, DateTime, BigInteger, ForeignKey
from pkg.db_util.sql_alchemy.declarative_base import Base
import uuid


def generate_uuid():
    return str(uuid.uuid4())


class FileModel(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    key = Column(String, unique=True, nullable=False)
    size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    uploader_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
