"""Pydantic schemas for User registration, projection, update and filtering."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.user import UserRole


def _normalise_email(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().lower()
    if v and "@" not in v:
        raise ValueError("Invalid email address")
    return v


class UserCreate(BaseModel):
    username: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None

    @field_validator("username")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)  # type: ignore[return-value]


class UserRead(BaseModel):
    """Read-only projection of a user; never carries the password digest."""

    id: int
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    role: UserRole
    created_at: datetime
    modified_at: datetime | None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """Updatable fields.  Password changes are not accepted here."""

    username: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole | None = None

    model_config = {"extra": "forbid"}

    @field_validator("username")
    @classmethod
    def _username(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Username must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        v = _normalise_email(v)
        if v is not None and not v:
            raise ValueError("Email must not be empty")
        return v


class UserFilters(BaseModel):
    """Optional listing constraints; unset fields do not restrict the result."""

    role: UserRole | None = None
    username: str | None = None
    email: str | None = None
    name: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


class DeleteResponse(BaseModel):
    success: bool
