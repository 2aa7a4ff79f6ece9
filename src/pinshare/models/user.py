from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from .file import CamelModel

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="after")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

class UserSummary(CamelModel):
    id: UUID
    username: str
    email: str

class UserProfile(UserSummary):
    created_at: datetime
    files: list[UUID] = Field(default_factory=list, validation_alias="file_ids")

class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserSummary

class ProfileResponse(BaseModel):
    user: UserProfile
