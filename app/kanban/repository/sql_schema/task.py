from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey
from pkg.db_util.sql_alchemy.declarative_base import Base
import uuid


def generate_uuid():
    return str(uuid.uuid4())


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=generate_uuid)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="todo", index=True)
    order = Column(Integer, nullable=False, default=0)
    creator_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    assignee_id = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
