"""Price surgeon tests -- service against the in-memory repository, then the
action-dispatched endpoint with mocked auth."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.opsdeck.api.v1.pricing import router
from src.opsdeck.pricing.schemas import PriceAction, ProductCreate
from src.opsdeck.pricing.service import MissingCompetitorUrl, PriceSurgeonService, ProductNotFound

WIDGET = ProductCreate(
    product_name="Widget Pro",
    my_price=100,
    my_cogs=50,
    min_margin_percent=20,
    competitor_url="https://rival.test/widget",
)


@pytest.fixture
def fetcher():
    return SimpleNamespace(fetch_price=AsyncMock(return_value=80.0))


@pytest.fixture
def surgeon(pricing_repo, fetcher) -> PriceSurgeonService:
    return PriceSurgeonService(pricing_repo, fetcher)


# ── Service ─────────────────────────────────────────────────────────────────


async def test_scan_matches_and_records(surgeon, pricing_repo, org_id):
    product = await surgeon.add_product(org_id, WIDGET)

    result = await surgeon.scan_product(org_id, product.id)

    assert result.action == PriceAction.MATCH_PRICE
    assert result.competitor_price == 80.0
    assert result.previous_competitor_price is None
    assert result.min_safe_price == pytest.approx(60)
    stored = await pricing_repo.get_product(org_id, product.id)
    assert stored.competitor_price == 80.0
    assert stored.price_action_taken == PriceAction.MATCH_PRICE
    assert stored.last_checked is not None
    assert pricing_repo.alerts == []


async def test_second_scan_with_big_move_creates_alert(surgeon, pricing_repo, fetcher, org_id):
    product = await surgeon.add_product(org_id, WIDGET)
    await surgeon.scan_product(org_id, product.id)

    fetcher.fetch_price.return_value = 55.0
    result = await surgeon.scan_product(org_id, product.id)

    assert result.action == PriceAction.HOLD_PRICE
    assert result.previous_competitor_price == 80.0
    assert len(pricing_repo.alerts) == 1
    assert pricing_repo.alerts[0].alert_type == "price_drop"
    assert pricing_repo.alerts[0].product_id == product.id


async def test_recent_alerts_newest_first(surgeon, fetcher, org_id):
    product = await surgeon.add_product(org_id, WIDGET)
    for price in (80.0, 55.0, 75.0):
        fetcher.fetch_price.return_value = price
        await surgeon.scan_product(org_id, product.id)

    alerts = await surgeon.recent_alerts(org_id)

    assert [a.alert_type for a in alerts] == ["price_increase", "price_drop"]
    assert [a.alert_type for a in await surgeon.recent_alerts(org_id, limit=1)] == ["price_increase"]


async def test_failed_extraction_leaves_product_untouched(surgeon, pricing_repo, fetcher, org_id):
    product = await surgeon.add_product(org_id, WIDGET)
    fetcher.fetch_price.return_value = None

    result = await surgeon.scan_product(org_id, product.id)

    assert result.action == PriceAction.NO_ACTION
    stored = await pricing_repo.get_product(org_id, product.id)
    assert stored.last_checked is None
    assert stored.competitor_price is None


async def test_scan_errors(surgeon, org_id):
    with pytest.raises(ProductNotFound):
        await surgeon.scan_product(org_id, "missing")

    product = await surgeon.add_product(org_id, WIDGET.model_copy(update={"competitor_url": None}))
    with pytest.raises(MissingCompetitorUrl):
        await surgeon.scan_product(org_id, product.id)


async def test_scan_all_reports_failures_in_place(surgeon, org_id):
    await surgeon.add_product(org_id, WIDGET)
    no_url = await surgeon.add_product(
        org_id, ProductCreate(product_name="Basic", my_price=10, my_cogs=5)
    )

    results = await surgeon.scan_all(org_id)

    assert len(results) == 2
    by_id = {r["product_id"]: r for r in results}
    assert by_id[no_url.id] == {
        "success": False,
        "product_id": no_url.id,
        "error": "No competitor URL configured",
    }
    assert sum(1 for r in results if r.get("action") == "match_price") == 1


async def test_update_price_and_history(surgeon, org_id):
    product = await surgeon.add_product(org_id, WIDGET)

    updated = await surgeon.update_my_price(org_id, product.id, 89.0)
    assert updated.my_price == 89.0

    history = await surgeon.price_history(org_id)
    assert [(h.product_name, h.my_price) for h in history] == [("Widget Pro", 89.0)]

    with pytest.raises(ProductNotFound):
        await surgeon.update_my_price(org_id, "missing", 1.0)


# ── Endpoint ────────────────────────────────────────────────────────────────


@pytest.fixture
def app(make_app, surgeon):
    return make_app([router], role="operator", price_surgeon=surgeon)


async def _add(client) -> dict:
    response = await client.post(
        "/api/v1/functions/price-surgeon",
        json={"action": "add_product", "product": WIDGET.model_dump()},
    )
    assert response.status_code == 200, response.text
    return response.json()["product"]


async def test_api_add_and_get_products(client):
    product = await _add(client)
    assert product["min_margin_percent"] == 20

    response = await client.post("/api/v1/functions/price-surgeon", json={"action": "get_products"})
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["products"]] == [product["id"]]


async def test_api_scan_competitor_price(client):
    product = await _add(client)

    response = await client.post(
        "/api/v1/functions/price-surgeon",
        json={"action": "scan_competitor_price", "product_id": product["id"]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["action"] == "match_price"
    assert data["competitor_price"] == 80.0


async def test_api_scan_all_and_history(client):
    await _add(client)

    scan = await client.post("/api/v1/functions/price-surgeon", json={"action": "scan_all"})
    assert scan.json()["scanned"] == 1

    history = await client.post("/api/v1/functions/price-surgeon", json={"action": "get_price_history"})
    assert history.json()["history"][0]["competitor_price"] == 80.0
    assert history.json()["alerts"] == []


async def test_api_history_includes_recent_alerts(client, fetcher):
    await _add(client)
    await client.post("/api/v1/functions/price-surgeon", json={"action": "scan_all"})
    fetcher.fetch_price.return_value = 55.0
    await client.post("/api/v1/functions/price-surgeon", json={"action": "scan_all"})

    response = await client.post("/api/v1/functions/price-surgeon", json={"action": "get_price_history"})

    data = response.json()
    assert data["history"][0]["competitor_price"] == 55.0
    (alert,) = data["alerts"]
    assert alert["alert_type"] == "price_drop"
    assert "Widget Pro" in alert["message"]


async def test_api_update_my_price(client):
    product = await _add(client)

    response = await client.post(
        "/api/v1/functions/price-surgeon",
        json={"action": "update_my_price", "product_id": product["id"], "new_price": 95},
    )

    assert response.status_code == 200
    assert response.json()["product"]["my_price"] == 95


async def test_api_invalid_action(client):
    response = await client.post("/api/v1/functions/price-surgeon", json={"action": "explode"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid action"}


async def test_api_missing_fields(client):
    response = await client.post("/api/v1/functions/price-surgeon", json={"action": "add_product"})
    assert response.status_code == 400
    assert response.json()["detail"] == "product is required"

    response = await client.post(
        "/api/v1/functions/price-surgeon", json={"action": "scan_competitor_price"}
    )
    assert response.status_code == 400


async def test_api_unknown_product_is_404(client):
    response = await client.post(
        "/api/v1/functions/price-surgeon",
        json={"action": "scan_competitor_price", "product_id": "missing"},
    )
    assert response.status_code == 404


async def test_api_member_cannot_change_price(make_app, surgeon):
    app = make_app([router], role="member", price_surgeon=surgeon)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        listed = await client.post("/api/v1/functions/price-surgeon", json={"action": "get_products"})
        response = await client.post(
            "/api/v1/functions/price-surgeon",
            json={"action": "update_my_price", "product_id": "x", "new_price": 1},
        )

    assert listed.status_code == 200
    assert response.status_code == 403
    assert "update_price" in response.json()["detail"]


async def test_api_503_when_not_initialized(make_app):
    app = make_app([router], price_surgeon=None)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/v1/functions/price-surgeon", json={"action": "get_products"})

    assert response.status_code == 503
