"""FastAPI dependency injection for organization-scoped resources and authentication.

These dependencies are used in endpoint function signatures to inject
the organization context, database sessions, the authenticated user, the
permission gate, and the services built during application startup.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.core.database import get_org_session, get_shared_session
from src.opsdeck.core.organization import OrganizationContext, get_current_organization
from src.opsdeck.core.security import validate_api_key, verify_token
from src.opsdeck.governance.roles import can_perform_action
from src.opsdeck.models.organization import User


async def get_organization() -> OrganizationContext:
    """Get the current organization context (set by OrganizationAuthMiddleware)."""
    try:
        return get_current_organization()
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing organization context",
        )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get an organization-scoped database session."""
    async for session in get_org_session():
        yield session


async def get_shared_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a shared-schema database session (for admin endpoints)."""
    async for session in get_shared_session():
        yield session


async def _load_user(db: AsyncSession, user_id: str, organization_id: str) -> User | None:
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.organization_id == organization_id,
            User.is_active == True,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user from JWT or API key.

    Checks Authorization header for Bearer JWT first, then X-API-Key header.

    Raises:
        HTTPException(401): If no valid authentication is provided.
        HTTPException(403): If the credential belongs to another organization.
    """
    organization = get_current_organization()

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        payload = verify_token(auth_header[7:], token_type="access")

        token_org_id = payload.get("organization_id")
        if token_org_id and token_org_id != organization.organization_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Token organization does not match request organization context",
            )

        user = await _load_user(db, payload["sub"], organization.organization_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive",
            )
        return user

    api_key = request.headers.get("X-API-Key")
    if api_key:
        key_info = await validate_api_key(api_key)
        if not key_info:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
            )

        if key_info["organization_id"] != organization.organization_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="API key organization does not match request organization context",
            )

        user = await _load_user(db, key_info["user_id"], organization.organization_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="API key user not found or inactive",
            )
        return user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_permission(action: str):
    """Dependency factory: the authenticated user's role must grant ``action``.

    Usage::

        @router.post("/x")
        async def x(user: User = Depends(require_permission("update_price"))): ...
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        if not can_perform_action(user.role, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user.role}' is not permitted to {action}",
            )
        return user

    return _check


# ── Services from app.state ─────────────────────────────────────────────────


def _from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_approval_service(request: Request) -> Any:
    return _from_state(request, "approval_service", "Approval service")


def get_risk_registry_dep(request: Request) -> Any:
    return _from_state(request, "risk_registry", "Risk registry")


def get_price_surgeon(request: Request) -> Any:
    return _from_state(request, "price_surgeon", "Price surgeon")


def get_pricing_enforcer(request: Request) -> Any:
    return _from_state(request, "pricing_enforcer", "Pricing enforcer")


def get_sniper_outreach(request: Request) -> Any:
    return _from_state(request, "sniper_outreach", "Sniper outreach")


def get_llm(request: Request) -> Any:
    return _from_state(request, "llm_service", "LLM service")
