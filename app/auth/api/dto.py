from pydantic import BaseModel, Field, field_validator
from typing import Optional
import re

from pkg.util.validate_email import is_valid_email


class SignupDTO(BaseModel):
    """DTO for user registration"""

    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    invite_token: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not is_valid_email(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be empty")
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not re.search(r"[a-z]", value) or not re.search(r"[A-Z]", value) or not re.search(r"\d", value):
            raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
        return value


class LoginDTO(BaseModel):
    """DTO for user login"""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class BaseResponse(BaseModel):
    status: bool
    message: str
    data: dict | None = None
