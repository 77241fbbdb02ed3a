#!/usr/bin/env python3
"""CLI script to provision a new organization.

Usage:
    python scripts/provision_organization.py --slug acme-co --name "Acme Co"
    python scripts/provision_organization.py --slug acme-co --name "Acme Co" \
        --admin-email owner@acme.co --admin-password changeme

Uses DATABASE_URL from the environment or .env (via Settings). Creates the
organization schema, its tables and RLS policies, registers it in
shared.organizations, and optionally creates a first user (role owner by
default).
"""

from __future__ import annotations

import argparse
import asyncio
import uuid

from sqlalchemy import text

from src.opsdeck.core.database import close_db, get_engine, init_db
from src.opsdeck.core.security import hash_password
from src.opsdeck.governance.roles import Role
from src.opsdeck.services.provisioning import provision_organization


async def provision(
    slug: str,
    name: str,
    admin_email: str | None,
    admin_password: str | None,
    admin_role: str,
) -> None:
    await init_db()

    print(f"Provisioning organization: slug={slug}, name={name}")
    result = await provision_organization(slug=slug, name=name)
    print("Organization provisioned:")
    print(f"  ID:     {result['id']}")
    print(f"  Slug:   {result['slug']}")
    print(f"  Schema: {result['schema_name']}")

    if admin_email and admin_password:
        schema_name = result["schema_name"]
        async with get_engine().begin() as conn:
            # RLS applies to the insert, so set the organization first
            await conn.execute(
                text("SELECT set_config('app.current_organization_id', :oid, true)"),
                {"oid": result["id"]},
            )
            await conn.execute(
                text(f"""
                    INSERT INTO "{schema_name}".users
                        (id, organization_id, email, name, role, is_active, hashed_password, created_at)
                    VALUES (:id, :organization_id, :email, :name, :role, true, :hashed_password, now())
                """),
                {
                    "id": uuid.uuid4(),
                    "organization_id": result["id"],
                    "email": admin_email,
                    "name": f"Admin ({name})",
                    "role": admin_role,
                    "hashed_password": hash_password(admin_password),
                },
            )
        print(f"  User created: {admin_email} ({admin_role})")

    await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new organization")
    parser.add_argument("--slug", required=True, help="Organization slug (e.g., acme-co)")
    parser.add_argument("--name", required=True, help="Display name (e.g., 'Acme Co')")
    parser.add_argument("--admin-email", default=None, help="Initial user email")
    parser.add_argument("--admin-password", default=None, help="Initial user password")
    parser.add_argument(
        "--admin-role",
        default=Role.OWNER.value,
        choices=[r.value for r in Role],
        help="Initial user role",
    )
    args = parser.parse_args()

    if bool(args.admin_email) != bool(args.admin_password):
        parser.error("--admin-email and --admin-password must be provided together")

    asyncio.run(provision(args.slug, args.name, args.admin_email, args.admin_password, args.admin_role))


if __name__ == "__main__":
    main()
