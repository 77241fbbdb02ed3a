"""Prometheus metrics, health, and LLM call tracking tests."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from prometheus_client import REGISTRY

from src.opsdeck.api.v1.health import router as health_router
from src.opsdeck.core.monitoring import MetricsMiddleware, get_metrics_response, track_llm_call


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestTrackLlmCall:
    async def test_success_counts_tokens(self):
        labels = {"model": "fast", "organization_id": "org-metrics"}
        before_ok = _sample("llm_requests_total", {**labels, "status": "success"})
        before_prompt = _sample("llm_tokens_used_total", {**labels, "token_type": "prompt"})

        async with track_llm_call("fast", "org-metrics") as tracker:
            tracker["prompt_tokens"] = 12
            tracker["completion_tokens"] = 3

        assert _sample("llm_requests_total", {**labels, "status": "success"}) == before_ok + 1
        assert _sample("llm_tokens_used_total", {**labels, "token_type": "prompt"}) == before_prompt + 12

    async def test_failure_is_counted_and_reraised(self):
        labels = {"model": "reasoning", "organization_id": "org-metrics", "status": "error"}
        before = _sample("llm_requests_total", labels)

        with pytest.raises(ValueError):
            async with track_llm_call("reasoning", "org-metrics"):
                raise ValueError("provider down")

        assert _sample("llm_requests_total", labels) == before + 1


def test_metrics_response_is_prometheus_text():
    response = get_metrics_response()
    assert response.media_type.startswith("text/plain")
    assert b"http_requests_total" in response.body


@pytest.fixture
def app():
    app = FastAPI()
    app.include_router(health_router)
    app.add_middleware(MetricsMiddleware)
    return app


async def test_liveness_is_recorded(client):
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200", "organization_id": "unknown"}
    before = _sample("http_requests_total", labels)

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert _sample("http_requests_total", labels) == before + 1
