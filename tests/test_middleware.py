"""Organization resolution and request logging middleware tests.

Organization lookups are served from a mocked Redis cache so no database is
touched.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI

from src.opsdeck.api.middleware.logging import LoggingMiddleware
from src.opsdeck.api.middleware.organization import OrganizationAuthMiddleware
from src.opsdeck.core.organization import get_current_organization
from src.opsdeck.core.security import create_access_token

ORG_ID = "4b1f8a52-52a4-4a1e-9b59-0f3a1a6d2c11"


def _redis() -> MagicMock:
    redis_client = MagicMock()
    payload = json.dumps({"organization_id": ORG_ID, "slug": "acme-co", "schema_name": "org_acme_co"})
    redis_client.get = AsyncMock(return_value=payload)
    redis_client.set = AsyncMock()
    return redis_client


def _build_app(redis_client) -> FastAPI:
    app = FastAPI()

    @app.get("/whoami")
    async def whoami():
        org = get_current_organization()
        return {"organization_id": org.organization_id, "schema_name": org.schema_name}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.add_middleware(OrganizationAuthMiddleware, redis_client=redis_client)
    app.add_middleware(LoggingMiddleware)
    return app


@pytest.fixture
def app():
    return _build_app(_redis())


async def test_header_resolves_organization(client):
    response = await client.get("/whoami", headers={"X-Organization-ID": ORG_ID})

    assert response.status_code == 200
    assert response.json() == {"organization_id": ORG_ID, "schema_name": "org_acme_co"}


async def test_jwt_claims_resolve_organization(client):
    token = create_access_token(
        {"sub": "user-1", "organization_id": ORG_ID, "organization_slug": "acme-co", "role": "member"}
    )

    response = await client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["schema_name"] == "org_acme_co"


async def test_missing_organization_is_400(client):
    response = await client.get("/whoami")

    assert response.status_code == 400
    assert "Missing organization context" in response.json()["detail"]


async def test_skip_paths_pass_through(client):
    response = await client.get("/health")
    assert response.status_code == 200


async def test_garbage_token_falls_back_to_header(client):
    response = await client.get(
        "/whoami",
        headers={"Authorization": "Bearer not-a-jwt", "X-Organization-ID": ORG_ID},
    )
    assert response.status_code == 200


async def test_request_id_header_is_set(client):
    first = await client.get("/health")
    second = await client.get("/health")

    assert first.headers["X-Request-ID"]
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


async def test_context_does_not_leak_between_requests(client):
    await client.get("/whoami", headers={"X-Organization-ID": ORG_ID})

    with pytest.raises(RuntimeError):
        get_current_organization()
