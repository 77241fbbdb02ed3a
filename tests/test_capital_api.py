"""Capital advisor endpoint tests."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from src.opsdeck.api.v1.capital import router

PROFILE = {"name": "Ledgerly", "industry": "fintech", "stage": "seed", "metrics": {"growth": 0.3}}


@pytest.fixture
def app(make_app):
    return make_app([router], role="member")


async def test_pitch(client):
    response = await client.post("/api/v1/capital/pitch", json={"profile": PROFILE, "pitch": {}})

    assert response.status_code == 200
    data = response.json()
    assert data["overall_score"] == 43
    assert len(data["elements"]) == 7
    assert data["quick_fixes"][0].startswith("[Traction]")


async def test_deal_structure_without_term_sheet(client):
    response = await client.post("/api/v1/capital/deal-structure", json={"profile": PROFILE})

    assert response.status_code == 200
    data = response.json()
    assert data["recommended_structure"]["type"] == "safe"
    assert data["recommended_structure"]["terms"]["cap"] == 12_000_000
    assert len(data["walk_away_points"]) == 5


async def test_deal_structure_with_term_sheet(client):
    body = {
        "profile": {**PROFILE, "stage": "series-b"},
        "term_sheet": {
            "deal_type": "equity",
            "amount": 10_000_000,
            "valuation": 40_000_000,
            "liquidation_preference": 2,
            "participating_preferred": True,
            "antidilution": "full-ratchet",
        },
    }

    response = await client.post("/api/v1/capital/deal-structure", json=body)

    assert response.status_code == 200
    structure = response.json()["recommended_structure"]
    assert len(structure["red_flags"]) == 2
    assert [a["type"] for a in structure["alternatives"]] == ["safe", "revenue-share"]


async def test_invalid_stage_is_422(client):
    response = await client.post(
        "/api/v1/capital/deal-structure", json={"profile": {**PROFILE, "stage": "series-z"}}
    )
    assert response.status_code == 422


async def test_compare(client):
    structures = [
        {"type": "safe", "terms": {"cap": 12_000_000}, "red_flags": ["a"]},
        {"type": "equity", "terms": {"board_seats": 1}, "red_flags": ["a", "b"]},
    ]

    response = await client.post("/api/v1/capital/compare", json={"structures": structures})

    assert response.status_code == 200
    assert response.json()["recommendation"] == "Recommend safe - fewest concerns (1 red flags vs 2)"


async def test_compare_nothing(client):
    response = await client.post("/api/v1/capital/compare", json={"structures": []})
    assert response.json()["recommendation"] == "No structures to compare"


async def test_viewer_is_forbidden(make_app):
    app = make_app([router], role="viewer")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/capital/pitch", json={"profile": PROFILE, "pitch": {}})

    assert response.status_code == 403
