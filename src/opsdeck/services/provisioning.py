"""Organization provisioning -- schema, tables, RLS policies, registry row.

A new organization gets its own PostgreSQL schema. Every per-organization
table is created from OrgBase metadata with the "org" placeholder remapped
to that schema, then row level security is forced on each table with a
policy keyed on app.current_organization_id.
"""

from __future__ import annotations

import re
import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy import text

# Imported for their side effect of registering tables on OrgBase.metadata
import src.opsdeck.activity.models  # noqa: F401
import src.opsdeck.governance.models  # noqa: F401
import src.opsdeck.models.organization  # noqa: F401
import src.opsdeck.outreach.models  # noqa: F401
import src.opsdeck.pricing.models  # noqa: F401
from src.opsdeck.core.database import OrgBase, get_engine
from src.opsdeck.core.organization import OrganizationContext, schema_name_for

logger = structlog.get_logger(__name__)

# Lowercase alphanumeric + hyphens, 3-50 chars, alphanumeric at both ends
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,48}[a-z0-9]$")


def organization_tables() -> list[str]:
    """Names of every per-organization table, in dependency order."""
    return [t.name for t in OrgBase.metadata.sorted_tables]


def _rls_statements(schema_name: str, table: str) -> list[str]:
    qualified = f'"{schema_name}".{table}'
    return [
        f"ALTER TABLE {qualified} ENABLE ROW LEVEL SECURITY",
        f"ALTER TABLE {qualified} FORCE ROW LEVEL SECURITY",
        f"DROP POLICY IF EXISTS organization_isolation ON {qualified}",
        f"""
            CREATE POLICY organization_isolation ON {qualified}
            FOR ALL
            USING (organization_id::text = current_setting('app.current_organization_id', true))
            WITH CHECK (organization_id::text = current_setting('app.current_organization_id', true))
        """,
    ]


async def provision_organization(slug: str, name: str) -> dict:
    """Create an organization's schema and tables and register it.

    Raises:
        HTTPException(400): Invalid slug format.
        HTTPException(409): An organization with this slug already exists.
    """
    if not SLUG_PATTERN.match(slug):
        raise HTTPException(
            status_code=400,
            detail="Slug must be 3-50 chars, lowercase alphanumeric and hyphens only, "
                   "must start and end with alphanumeric character.",
        )

    schema_name = schema_name_for(slug)
    organization_id = uuid.uuid4()

    engine = get_engine()
    async with engine.begin() as conn:
        result = await conn.execute(
            text("SELECT id FROM shared.organizations WHERE slug = :slug"),
            {"slug": slug},
        )
        if result.first():
            raise HTTPException(status_code=409, detail=f"Organization with slug '{slug}' already exists")

        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"'))

        scoped = await conn.execution_options(schema_translate_map={"org": schema_name})
        await scoped.run_sync(OrgBase.metadata.create_all)

        for table in organization_tables():
            for statement in _rls_statements(schema_name, table):
                await conn.execute(text(statement))

        await conn.execute(
            text("""
                INSERT INTO shared.organizations (id, slug, name, schema_name, is_active, created_at)
                VALUES (:id, :slug, :name, :schema_name, true, now())
            """),
            {"id": organization_id, "slug": slug, "name": name, "schema_name": schema_name},
        )

    logger.info(
        "provisioning.organization_created",
        organization_id=str(organization_id),
        slug=slug,
        tables=len(organization_tables()),
    )
    return {
        "id": str(organization_id),
        "slug": slug,
        "name": name,
        "schema_name": schema_name,
        "is_active": True,
    }


async def list_organizations() -> list[dict]:
    """All active organizations, oldest first."""
    engine = get_engine()
    async with engine.connect() as conn:
        result = await conn.execute(
            text(
                "SELECT id, slug, name, schema_name, is_active, created_at "
                "FROM shared.organizations WHERE is_active = true ORDER BY created_at"
            )
        )
        return [
            {
                "id": str(row.id),
                "slug": row.slug,
                "name": row.name,
                "schema_name": row.schema_name,
                "is_active": row.is_active,
                "created_at": row.created_at,
            }
            for row in result.fetchall()
        ]


async def list_organization_contexts() -> list[OrganizationContext]:
    """Contexts for every active organization, for background jobs."""
    return [
        OrganizationContext(
            organization_id=org["id"],
            slug=org["slug"],
            schema_name=org["schema_name"],
        )
        for org in await list_organizations()
    ]
