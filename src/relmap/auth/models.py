"""Authentication data models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AuthCredentials(BaseModel):
    username: str
    password: str


class AuthResult(BaseModel):
    success: bool
    token: str | None = None
    user_id: str | None = None
    display_name: str = ""
    error: str | None = None


class TokenValidation(BaseModel):
    valid: bool
    user_id: str | None = None
    expires_at: datetime | None = None
