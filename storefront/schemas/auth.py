"""
Auth-related Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from uuid import UUID

from storefront.core.security import MAX_PASSWORD_BYTES


def _normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


class UserSignup(BaseModel):
    """Schema for user signup request."""
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class UserLogin(BaseModel):
    """Schema for login request."""
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserResponse(BaseModel):
    """Schema for user profile response (without password)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: str


class MessageResponse(BaseModel):
    message: str
