"""Authentication API endpoints.

Provides login, token refresh, current user info, and API key management.
Login and refresh need an organization context (X-Organization-ID) but no
credentials; everything else requires a valid JWT or API key.
"""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.api.deps import get_current_user, get_db, get_organization, require_permission
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from src.opsdeck.governance.roles import get_permissions
from src.opsdeck.models.organization import ApiKey, User
from src.opsdeck.schemas.auth import (
    ApiKeyCreate,
    ApiKeyResponse,
    LoginRequest,
    TokenRefreshRequest,
    TokenResponse,
    UserResponse,
)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _issue_tokens(user: User, organization: OrganizationContext) -> TokenResponse:
    token_data = {
        "sub": str(user.id),
        "organization_id": str(user.organization_id),
        "organization_slug": organization.slug,
        "email": user.email,
        "role": user.role,
    }
    return TokenResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token(token_data),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    organization: OrganizationContext = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
):
    """Authenticate a user within the request's organization and return JWT tokens."""
    result = await db.execute(
        select(User).where(
            User.email == body.email,
            User.organization_id == organization.organization_id,
            User.is_active == True,  # noqa: E712
        )
    )
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return _issue_tokens(user, organization)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    body: TokenRefreshRequest,
    organization: OrganizationContext = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token for a new token pair; the user must still be active."""
    payload = verify_token(body.refresh_token, token_type="refresh")

    result = await db.execute(
        select(User).where(
            User.id == payload["sub"],
            User.organization_id == organization.organization_id,
            User.is_active == True,  # noqa: E712
        )
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return _issue_tokens(user, organization)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
):
    return UserResponse(
        id=str(current_user.id),
        email=current_user.email,
        name=current_user.name,
        role=current_user.role,
        permissions=sorted(get_permissions(current_user.role)),
        organization_id=str(current_user.organization_id),
        organization_slug=organization.slug,
    )


@router.post("/api-keys", response_model=ApiKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    body: ApiKeyCreate,
    current_user: User = Depends(require_permission("add_api_keys")),
    organization: OrganizationContext = Depends(get_organization),
    db: AsyncSession = Depends(get_db),
):
    """Create an API key for the authenticated user.

    The raw key is returned only once at creation time.
    """
    raw_key = secrets.token_urlsafe(32)

    api_key = ApiKey(
        organization_id=organization.organization_id,
        user_id=current_user.id,
        key_hash=hash_password(raw_key),
        name=body.name,
    )
    db.add(api_key)
    await db.commit()
    await db.refresh(api_key)

    return ApiKeyResponse(
        id=str(api_key.id),
        name=api_key.name,
        key=raw_key,
        created_at=api_key.created_at,
    )
