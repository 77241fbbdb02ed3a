"""Organization provisioning tests -- naming, table set, RLS, and the endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI, HTTPException

from src.opsdeck.api.v1.organizations import router
from src.opsdeck.core.organization import schema_name_for
from src.opsdeck.services.provisioning import (
    SLUG_PATTERN,
    _rls_statements,
    organization_tables,
    provision_organization,
)


def test_schema_name_for():
    assert schema_name_for("acme-co") == "org_acme_co"
    assert schema_name_for("abc") == "org_abc"


@pytest.mark.parametrize("slug", ["acme-co", "abc", "a1-b2-c3"])
def test_valid_slugs(slug):
    assert SLUG_PATTERN.match(slug)


@pytest.mark.parametrize("slug", ["ab", "-acme", "acme-", "Acme", "acme_co", "a" * 51])
def test_invalid_slugs(slug):
    assert not SLUG_PATTERN.match(slug)


async def test_invalid_slug_is_rejected_before_touching_the_database():
    with pytest.raises(HTTPException) as exc_info:
        await provision_organization(slug="Not A Slug", name="Bad")
    assert exc_info.value.status_code == 400


def test_every_organization_table_is_provisioned():
    tables = organization_tables()
    assert set(tables) == {
        "users",
        "api_keys",
        "approval_requests",
        "agent_execution_logs",
        "autonomous_actions",
        "pricing_products",
        "competitor_alerts",
        "news_signals",
        "prompt_variants",
    }
    assert "organizations" not in tables
    assert tables.index("users") < tables.index("api_keys")


def test_rls_is_forced_with_organization_policy():
    statements = _rls_statements("org_acme_co", "pricing_products")
    assert statements[0] == 'ALTER TABLE "org_acme_co".pricing_products ENABLE ROW LEVEL SECURITY'
    assert statements[1].endswith("FORCE ROW LEVEL SECURITY")
    assert "current_setting('app.current_organization_id', true)" in statements[3]


# ── Endpoints ─────────────────────────────────────────────────────────────────

ORGANIZATION = {
    "id": "7d7f5c1e-1111-4222-8333-444455556666",
    "slug": "acme-co",
    "name": "Acme Co",
    "schema_name": "org_acme_co",
    "is_active": True,
    "created_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
}


@pytest.fixture
def app():
    app = FastAPI()
    app.include_router(router)
    return app


async def test_create_organization(client):
    provision = AsyncMock(return_value=ORGANIZATION)
    with patch("src.opsdeck.api.v1.organizations.provision_organization", provision):
        response = await client.post("/api/v1/organizations", json={"slug": "acme-co", "name": "Acme Co"})

    assert response.status_code == 201
    assert response.json()["schema_name"] == "org_acme_co"
    provision.assert_awaited_once_with(slug="acme-co", name="Acme Co")


async def test_create_organization_validates_slug(client):
    response = await client.post("/api/v1/organizations", json={"slug": "Acme Co", "name": "Acme"})
    assert response.status_code == 422


async def test_list_organizations(client):
    with patch(
        "src.opsdeck.api.v1.organizations.list_organizations",
        AsyncMock(return_value=[ORGANIZATION]),
    ):
        response = await client.get("/api/v1/organizations")

    assert response.status_code == 200
    assert [o["slug"] for o in response.json()] == ["acme-co"]
