"""Per-organization migration helpers.

Run Alembic migrations for one organization schema or for every active
organization registered in shared.organizations.
"""

from __future__ import annotations

import argparse

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

from src.opsdeck.config import get_settings


def _get_alembic_config() -> Config:
    return Config("alembic.ini")


def migrate_organization(schema_name: str, direction: str = "upgrade", revision: str = "organization@head") -> None:
    """Run migrations for a single organization schema (e.g., "org_acme_co")."""
    config = _get_alembic_config()
    # Read back by context.get_x_argument() in env.py
    config.cmd_opts = argparse.Namespace(x=[f"schema={schema_name}"])

    if direction == "upgrade":
        command.upgrade(config, revision)
    elif direction == "downgrade":
        command.downgrade(config, revision)
    else:
        raise ValueError(f"Invalid direction: {direction}")


def migrate_all_organizations(direction: str = "upgrade", revision: str = "organization@head") -> list[str]:
    """Migrate every active organization schema. Returns the schema names migrated."""
    engine = create_engine(get_settings().DATABASE_URL.replace("+asyncpg", ""))
    with engine.connect() as conn:
        result = conn.execute(
            text("SELECT schema_name FROM shared.organizations WHERE is_active = true")
        )
        schemas = [row[0] for row in result]
    engine.dispose()

    for schema_name in schemas:
        migrate_organization(schema_name, direction, revision)
    return schemas
