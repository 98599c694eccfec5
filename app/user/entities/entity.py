from datetime import datetime
from uuid import uuid4
from typing import Optional
from pydantic import BaseModel, Field


class Entity(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class User(Entity):
    email: str
    password_hash: Optional[str] = None
    name: str = ""

    def public(self) -> dict:
        """User fields safe to return to clients."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class UserSummary(BaseModel):
    id: str
    name: str
    email: str


class Invite(BaseModel):
    id: str
    token: str
    email: Optional[str] = None
    used: bool = False
    expires_at: datetime

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.used and self.expires_at > (now or datetime.utcnow())
