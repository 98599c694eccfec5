from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from pkg.db_util.sql_alchemy.declarative_base import Base
import uuid


def generate_uuid():
    return str(uuid.uuid4())


class UserModel(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class InviteModel(Base):
    __tablename__ = "invites"

    id = Column(String, primary_key=True, default=generate_uuid)
    token = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, nullable=True)
    used = Column(Boolean, nullable=False, default=False)
    used_by = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
