"""Async SQLAlchemy engine with per-organization schema isolation.

Provides:
- SharedBase: Declarative base for shared schema tables (organizations)
- OrgBase: Declarative base for per-organization tables (placeholder schema="org")
- get_shared_session(): Session for shared schema operations
- get_org_session(): Session with schema_translate_map for organization isolation
- Pool checkout event that resets session variables (RESET ALL)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import MetaData, event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.opsdeck.config import get_settings
from src.opsdeck.core.organization import get_current_organization

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=20,
            max_overflow=10,
            echo=False,
        )

        # A pooled connection must never carry the previous request's organization
        @event.listens_for(_engine.sync_engine, "checkout")
        def reset_session_variables(dbapi_conn: Any, connection_record: Any, connection_proxy: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("RESET ALL")
            cursor.close()

    return _engine


# ── Declarative Bases ───────────────────────────────────────────────────────

shared_metadata = MetaData(schema="shared")
org_metadata = MetaData(schema="org")


class SharedBase(DeclarativeBase):
    """Base class for shared schema models (the organizations registry)."""

    metadata = shared_metadata


class OrgBase(DeclarativeBase):
    """Base class for per-organization models.

    Uses placeholder schema="org" which is remapped at runtime via
    schema_translate_map to the actual schema (e.g., "org_acme_co").
    """

    metadata = org_metadata


# ── Session Factories ───────────────────────────────────────────────────────


async def get_shared_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession for the shared schema (no organization scoping)."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


async def get_org_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an organization-scoped AsyncSession.

    Maps the placeholder "org" schema to the current organization's schema
    and sets app.current_organization_id so RLS policies apply.
    """
    org = get_current_organization()
    engine = get_engine()

    async with engine.connect() as conn:
        conn = await conn.execution_options(
            schema_translate_map={"org": org.schema_name}
        )
        await conn.execute(
            text("SELECT set_config('app.current_organization_id', :oid, false)"),
            {"oid": org.organization_id},
        )

        async with AsyncSession(bind=conn, expire_on_commit=False) as session:
            yield session


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create the shared schema and shared tables if they don't exist."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text("CREATE SCHEMA IF NOT EXISTS shared"))
        await conn.run_sync(SharedBase.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
