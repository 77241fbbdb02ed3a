"""Schemas for login, token refresh, API keys and the current user."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from src.opsdeck.governance.roles import Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ApiKeyResponse(BaseModel):
    """Newly created API key. ``key`` is only ever returned here."""

    id: str
    name: str
    key: str
    created_at: datetime | None = None


class UserResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: Role
    permissions: list[str] = Field(default_factory=list)
    organization_id: str
    organization_slug: str
