"""Pydantic schemas for login and JWT tokens."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from app.models.user import UserRole


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenRead(BaseModel):
    token: str
    token_type: str = "bearer"
    username: str
    role: UserRole
    expires_at: datetime


class TokenClaims(BaseModel):
    """Identity claims decoded from a validated access token."""

    user_id: int
    username: str
    email: str
    role: UserRole
    issued_at: datetime
    expires_at: datetime

    model_config = {"frozen": True}
