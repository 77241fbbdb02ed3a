"""Organization resolution middleware.

Resolves the organization for a request from, in order:
1. JWT claims in the Authorization header (user requests)
2. X-API-Key header (scheduled jobs, webhooks)
3. X-Organization-ID header (login and service-to-service calls)

After resolution the OrganizationContext is set in contextvars for the
request scope. Paths in SKIP_ORGANIZATION_PATHS are passed through.
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.opsdeck.core.database import get_engine
from src.opsdeck.core.organization import (
    SKIP_ORGANIZATION_PATHS,
    OrganizationContext,
    reset_organization_context,
    schema_name_for,
    set_organization_context,
)
from src.opsdeck.core.redis import cache_organization, get_cached_organization
from src.opsdeck.core.security import decode_token_claims, validate_api_key

logger = structlog.get_logger(__name__)


class OrganizationAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, redis_client: aioredis.Redis | None = None):
        super().__init__(app)
        self._redis = redis_client

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(skip) for skip in SKIP_ORGANIZATION_PATHS):
            return await call_next(request)

        ctx = await self._resolve_from_jwt(request)
        if not ctx:
            ctx = await self._resolve_from_api_key(request)
        if not ctx:
            ctx = await self._resolve_from_header(request)

        if not ctx:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "detail": "Missing organization context. Provide Authorization header "
                    "with JWT, X-API-Key, or X-Organization-ID header."
                },
            )

        token = set_organization_context(ctx)
        try:
            return await call_next(request)
        finally:
            reset_organization_context(token)

    async def _resolve_from_jwt(self, request: Request) -> OrganizationContext | None:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None

        payload = decode_token_claims(auth_header[7:])
        if payload is None:
            return None

        organization_id = payload.get("organization_id")
        slug = payload.get("organization_slug")
        if not organization_id or not slug:
            return None

        if not await self._is_active(organization_id):
            return None

        return OrganizationContext(
            organization_id=organization_id,
            slug=slug,
            schema_name=schema_name_for(slug),
        )

    async def _resolve_from_api_key(self, request: Request) -> OrganizationContext | None:
        api_key = request.headers.get("X-API-Key")
        if not api_key:
            return None

        try:
            result = await validate_api_key(api_key)
        except Exception as e:
            logger.warning("organization_middleware.api_key_error", error=str(e))
            return None

        if not result:
            return None

        return OrganizationContext(
            organization_id=result["organization_id"],
            slug=result["organization_slug"],
            schema_name=schema_name_for(result["organization_slug"]),
        )

    async def _resolve_from_header(self, request: Request) -> OrganizationContext | None:
        organization_id = request.headers.get("X-Organization-ID")
        if not organization_id:
            return None
        return await self._resolve_by_id(organization_id)

    async def _is_active(self, organization_id: str) -> bool:
        if await get_cached_organization(self._redis, organization_id):
            return True
        return await self._resolve_by_id(organization_id) is not None

    async def _resolve_by_id(self, organization_id: str) -> OrganizationContext | None:
        cached = await get_cached_organization(self._redis, organization_id)
        if cached:
            return cached

        engine = get_engine()
        async with engine.connect() as conn:
            result = await conn.execute(
                text(
                    "SELECT id, slug, schema_name FROM shared.organizations "
                    "WHERE id::text = :oid AND is_active = true"
                ),
                {"oid": organization_id},
            )
            row = result.first()

        if not row:
            return None

        ctx = OrganizationContext(
            organization_id=str(row.id),
            slug=row.slug,
            schema_name=row.schema_name,
        )
        await cache_organization(self._redis, ctx)
        return ctx
