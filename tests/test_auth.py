"""Authentication tests -- login, refresh, /me, and API keys.

Requests run through OrganizationAuthMiddleware with a mocked Redis cache;
the database session is replaced by a fake whose queries return a fixed user.
"""

from __future__ import annotations

import json
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI

from src.opsdeck.api.deps import get_db
from src.opsdeck.api.middleware.organization import OrganizationAuthMiddleware
from src.opsdeck.api.v1.auth import router
from src.opsdeck.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token_claims,
    hash_password,
)

ORG_ID = str(uuid.uuid4())
HEADERS = {"X-Organization-ID": ORG_ID}


class FakeSession:
    """Answers every SELECT with ``user`` and records added rows."""

    def __init__(self, user):
        self.user = user
        self.added: list = []

    async def execute(self, statement):
        result = MagicMock()
        result.scalar_one_or_none.return_value = self.user
        return result

    def add(self, row):
        self.added.append(row)

    async def commit(self):
        pass

    async def refresh(self, row):
        row.id = uuid.uuid4()


@pytest.fixture
def user():
    return SimpleNamespace(
        id=uuid.uuid4(),
        organization_id=ORG_ID,
        email="ana@acme.com",
        name="Ana",
        role="operator",
        is_active=True,
        hashed_password=hash_password("s3cret"),
    )


@pytest.fixture
def session(user):
    return FakeSession(user)


@pytest.fixture
def app(session):
    redis_client = MagicMock()
    redis_client.get = AsyncMock(
        side_effect=lambda key: json.dumps({
            "organization_id": key.rsplit(":", 1)[-1],
            "slug": "acme-co",
            "schema_name": "org_acme_co",
        })
    )

    async def _db():
        yield session

    app = FastAPI()
    app.include_router(router)
    app.add_middleware(OrganizationAuthMiddleware, redis_client=redis_client)
    app.dependency_overrides[get_db] = _db
    return app


def _token(user) -> str:
    return create_access_token({
        "sub": str(user.id),
        "organization_id": ORG_ID,
        "organization_slug": "acme-co",
        "role": user.role,
    })


# ── Login ─────────────────────────────────────────────────────────────────────


async def test_login_valid_credentials(client, user):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "ana@acme.com", "password": "s3cret"},
        headers=HEADERS,
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["token_type"] == "bearer"
    claims = decode_token_claims(data["access_token"])
    assert claims["sub"] == str(user.id)
    assert claims["organization_id"] == ORG_ID
    assert claims["organization_slug"] == "acme-co"
    assert claims["role"] == "operator"


async def test_login_wrong_password(client):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "ana@acme.com", "password": "nope"},
        headers=HEADERS,
    )
    assert response.status_code == 401


async def test_login_unknown_user(client, session):
    session.user = None
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@acme.com", "password": "s3cret"},
        headers=HEADERS,
    )
    assert response.status_code == 401


async def test_login_without_organization(client):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "ana@acme.com", "password": "s3cret"}
    )
    assert response.status_code == 400


# ── Refresh ───────────────────────────────────────────────────────────────────


async def test_refresh(client, user):
    refresh = create_refresh_token({"sub": str(user.id), "organization_id": ORG_ID})

    response = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": refresh}, headers=HEADERS
    )

    assert response.status_code == 200
    assert decode_token_claims(response.json()["access_token"])["type"] == "access"


async def test_refresh_rejects_access_token(client, user):
    response = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": _token(user)}, headers=HEADERS
    )
    assert response.status_code == 401


# ── Current user ──────────────────────────────────────────────────────────────


async def test_me(client, user):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {_token(user)}"})

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["email"] == "ana@acme.com"
    assert data["role"] == "operator"
    assert data["organization_slug"] == "acme-co"
    assert "update_price" in data["permissions"]
    assert "manage_users" not in data["permissions"]


async def test_me_without_credentials(client):
    response = await client.get("/api/v1/auth/me", headers=HEADERS)
    assert response.status_code == 401


async def test_deactivated_user_is_rejected(client, user, session):
    token = _token(user)
    session.user = None

    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found or inactive"


# ── API keys ──────────────────────────────────────────────────────────────────


async def test_operator_cannot_create_api_key(client, user):
    response = await client.post(
        "/api/v1/auth/api-keys",
        json={"name": "scheduler"},
        headers={"Authorization": f"Bearer {_token(user)}"},
    )
    assert response.status_code == 403


async def test_admin_creates_api_key(client, user, session):
    user.role = "admin"

    response = await client.post(
        "/api/v1/auth/api-keys",
        json={"name": "scheduler"},
        headers={"Authorization": f"Bearer {_token(user)}"},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["name"] == "scheduler"
    (row,) = session.added
    assert row.key_hash != data["key"]
    assert row.organization_id == ORG_ID
