"""Redis connection pool and the organization lookup cache.

Organization resolution runs on every request, so the slug/schema triple for
an organization id is cached here for a few minutes instead of hitting the
shared.organizations table each time.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis
import structlog

from src.opsdeck.config import get_settings
from src.opsdeck.core.organization import OrganizationContext

logger = structlog.get_logger(__name__)

ORGANIZATION_CACHE_TTL = 300

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None


def _cache_key(organization_id: str) -> str:
    return f"org:lookup:{organization_id}"


async def get_cached_organization(
    redis_client: aioredis.Redis | None, organization_id: str
) -> OrganizationContext | None:
    """Return the cached context for an organization id, or None on miss/error."""
    if redis_client is None:
        return None
    try:
        cached = await redis_client.get(_cache_key(organization_id))
    except Exception:
        logger.warning("redis.organization_cache_get_failed", organization_id=organization_id)
        return None
    if not cached:
        return None
    data = json.loads(cached)
    return OrganizationContext(
        organization_id=data["organization_id"],
        slug=data["slug"],
        schema_name=data["schema_name"],
    )


async def cache_organization(
    redis_client: aioredis.Redis | None, ctx: OrganizationContext
) -> None:
    if redis_client is None:
        return
    try:
        await redis_client.set(
            _cache_key(ctx.organization_id),
            json.dumps({
                "organization_id": ctx.organization_id,
                "slug": ctx.slug,
                "schema_name": ctx.schema_name,
            }),
            ex=ORGANIZATION_CACHE_TTL,
        )
    except Exception:
        logger.warning("redis.organization_cache_set_failed", organization_id=ctx.organization_id)
