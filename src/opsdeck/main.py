"""FastAPI application factory.

Creates the app with organization middleware, logging middleware, metrics
middleware, CORS, Sentry, lifespan events for database and service
initialization, the approval sweep loop, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.opsdeck.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.opsdeck.api.middleware.organization import OrganizationAuthMiddleware
from src.opsdeck.api.v1.router import router as v1_router
from src.opsdeck.config import get_settings
from src.opsdeck.core.database import close_db, get_org_session, init_db
from src.opsdeck.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.opsdeck.core.redis import close_redis, get_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Init DB, Sentry and services on startup; stop the sweep and close pools on shutdown.

    Each module is initialized in its own try/except so a single failure
    leaves only that module's app.state entries as None (its endpoints
    answer 503) instead of preventing startup.
    """
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── LLM gateway ─────────────────────────────────────────────────────
    try:
        from src.opsdeck.services.llm import get_llm_service

        app.state.llm_service = get_llm_service()
        log.info("startup.llm_service_initialized", configured=app.state.llm_service.router is not None)
    except Exception:
        log.warning("startup.llm_service_init_failed", exc_info=True)
        app.state.llm_service = None

    llm_service = app.state.llm_service

    # ── Activity log (shared by the agents below) ───────────────────────
    try:
        from src.opsdeck.activity.repository import ActivityRepository

        app.state.activity_repository = ActivityRepository(session_factory=get_org_session)
    except Exception:
        log.warning("startup.activity_init_failed", exc_info=True)
        app.state.activity_repository = None

    # ── Governance: risk tiers, approvals, sweep loop ───────────────────
    try:
        from src.opsdeck.governance.approvals import ApprovalService
        from src.opsdeck.governance.repository import ApprovalRepository
        from src.opsdeck.governance.risk_tiers import get_risk_registry
        from src.opsdeck.governance.scheduler import (
            setup_governance_scheduler,
            start_governance_scheduler,
        )
        from src.opsdeck.services.provisioning import list_organization_contexts

        registry = get_risk_registry()
        approval_service = ApprovalService(
            repository=ApprovalRepository(session_factory=get_org_session),
            registry=registry,
        )
        app.state.risk_registry = registry
        app.state.approval_service = approval_service

        tasks = setup_governance_scheduler(approval_service, list_organization_contexts)
        await start_governance_scheduler(tasks, app.state, settings.APPROVAL_SWEEP_INTERVAL_SECONDS)
        log.info("startup.governance_initialized", action_count=len(registry))
    except Exception:
        log.warning("startup.governance_init_failed", exc_info=True)
        app.state.risk_registry = None
        app.state.approval_service = None

    # ── Pricing: price surgeon and enforcer ─────────────────────────────
    try:
        from src.opsdeck.pricing.competitor import CompetitorPriceFetcher
        from src.opsdeck.pricing.repository import PricingRepository
        from src.opsdeck.pricing.service import PriceSurgeonService, PricingEnforcer

        app.state.price_surgeon = PriceSurgeonService(
            repository=PricingRepository(session_factory=get_org_session),
            fetcher=CompetitorPriceFetcher(llm_service),
        )
        if app.state.activity_repository is not None and app.state.approval_service is not None:
            app.state.pricing_enforcer = PricingEnforcer(
                activity=app.state.activity_repository,
                approvals=app.state.approval_service,
                llm_service=llm_service,
            )
        else:
            app.state.pricing_enforcer = None
        log.info("startup.pricing_initialized")
    except Exception:
        log.warning("startup.pricing_init_failed", exc_info=True)
        app.state.price_surgeon = None
        app.state.pricing_enforcer = None

    # ── Outreach ────────────────────────────────────────────────────────
    try:
        from src.opsdeck.outreach.repository import OutreachRepository
        from src.opsdeck.outreach.service import SniperOutreachService

        if app.state.activity_repository is None:
            raise RuntimeError("activity repository unavailable")
        app.state.sniper_outreach = SniperOutreachService(
            repository=OutreachRepository(session_factory=get_org_session),
            activity=app.state.activity_repository,
            llm_service=llm_service,
            epsilon=settings.VARIANT_EPSILON,
            batch_size=settings.OUTREACH_BATCH_SIZE,
        )
        log.info("startup.outreach_initialized")
    except Exception:
        log.warning("startup.outreach_init_failed", exc_info=True)
        app.state.sniper_outreach = None

    yield

    # ── Shutdown ────────────────────────────────────────────────────────
    for task_ref in getattr(app.state, "governance_scheduler_tasks", None) or []:
        task_ref.cancel()

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="OpsDeck API",
        version="0.1.0",
        description="Organization-scoped business operations backend: pricing, outreach, capital and approvals",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Organization middleware (inner -- resolves organization from JWT/key/header)
    app.add_middleware(OrganizationAuthMiddleware, redis_client=get_redis_pool())

    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
