"""
auth/schemas.py - request/response contracts for /api/auth.

Emails are normalised (trimmed, lower-cased) at the schema boundary so every
lookup and the unique index agree on one spelling.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _normalise_email(value: str) -> str:
    return value.strip().lower()


class SignupRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = Field(None, max_length=32)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalise_email(value)

    @field_validator("phone")
    @classmethod
    def _blank_phone_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalise_email(value)


class UserProfile(BaseModel):
    """Public view of a user - never carries the password hash."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


class UserRecord(UserProfile):
    """User as held by the store, including the password hash."""

    password_hash: str = Field(..., exclude=True)
