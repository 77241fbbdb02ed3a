"""Shared test fixtures.

Provides:
- In-memory doubles for the approval, pricing, outreach and activity
  repositories (same method signatures as the SQLAlchemy ones)
- A fake authenticated user and organization context
- ``make_app``: a bare FastAPI app with auth and organization dependencies
  overridden and services placed on app.state
- ``client``: an httpx AsyncClient over whatever ``app`` fixture the test
  module defines

Nothing here needs PostgreSQL or Redis.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.opsdeck.activity.schemas import (
    AutonomousActionCreate,
    AutonomousActionRead,
    ExecutionLogCreate,
    ExecutionLogRead,
)
from src.opsdeck.config import get_settings
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.governance.schemas import (
    ApprovalRecord,
    ApprovalRequestCreate,
    ApprovalRequestRead,
    ApprovalStatus,
)
from src.opsdeck.outreach.schemas import (
    OutreachStatus,
    PromptVariant,
    PromptVariantCreate,
    SignalInput,
    SignalRead,
    SignalType,
)
from src.opsdeck.pricing.schemas import (
    CompetitorAlert,
    CompetitorAlertRead,
    PriceAction,
    ProductCreate,
    ProductRead,
)

ORG_ID = str(uuid.uuid4())
ORG = OrganizationContext(organization_id=ORG_ID, slug="acme-co", schema_name="org_acme_co")


# ── In-Memory Repositories ──────────────────────────────────────────────────


class InMemoryApprovalRepository:
    def __init__(self) -> None:
        self._requests: dict[str, ApprovalRequestRead] = {}

    async def create_request(
        self,
        organization_id: str,
        data: ApprovalRequestCreate,
        expires_at: datetime,
        escalate_at: datetime,
    ) -> ApprovalRequestRead:
        request = ApprovalRequestRead(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            action=data.action,
            title=data.title,
            requested_by=data.requested_by,
            payload=data.payload,
            value_impact=data.value_impact,
            expires_at=expires_at,
            escalate_at=escalate_at,
            created_at=datetime.now(timezone.utc),
        )
        self._requests[request.id] = request
        return request

    async def get_request(self, organization_id: str, request_id: str) -> ApprovalRequestRead | None:
        # Yield like a database round trip would
        await asyncio.sleep(0)
        request = self._requests.get(request_id)
        if request is None or request.organization_id != organization_id:
            return None
        return request

    async def list_requests(
        self, organization_id: str, status: ApprovalStatus | None = None
    ) -> list[ApprovalRequestRead]:
        return [
            r
            for r in reversed(list(self._requests.values()))
            if r.organization_id == organization_id and (status is None or r.status == status)
        ]

    async def update_request(self, organization_id: str, request_id: str, **fields: Any) -> ApprovalRequestRead:
        request = await self.get_request(organization_id, request_id)
        if request is None:
            raise ValueError(f"Approval request {request_id} not found")
        updated = request.model_copy(update=fields)
        self._requests[request_id] = updated
        return updated

    async def record_approval(
        self,
        organization_id: str,
        request_id: str,
        record: ApprovalRecord,
        required_approvers: int,
    ) -> tuple[ApprovalRequestRead, bool]:
        await asyncio.sleep(0)
        # No await between read and write, same as the row lock
        request = self._requests.get(request_id)
        if request is None or request.organization_id != organization_id:
            raise ValueError(f"Approval request {request_id} not found")
        if request.status != ApprovalStatus.PENDING or any(
            a.user_id == record.user_id for a in request.approvals
        ):
            return request, False
        fields: dict[str, Any] = {"approvals": [*request.approvals, record]}
        if len(fields["approvals"]) >= required_approvers:
            fields.update(
                status=ApprovalStatus.APPROVED,
                approver_id=record.user_id,
                resolved_at=record.approved_at,
            )
        updated = request.model_copy(update=fields)
        self._requests[request_id] = updated
        return updated, True


class InMemoryPricingRepository:
    def __init__(self) -> None:
        self.products: dict[str, ProductRead] = {}
        self.alerts: list[CompetitorAlertRead] = []

    async def create_product(self, organization_id: str, data: ProductCreate) -> ProductRead:
        product = ProductRead(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            product_name=data.product_name,
            my_price=data.my_price,
            my_cogs=data.my_cogs,
            min_margin_percent=data.min_margin_percent or get_settings().DEFAULT_MIN_MARGIN_PERCENT,
            competitor_url=data.competitor_url,
            competitor_selector=data.competitor_selector,
        )
        self.products[product.id] = product
        return product

    async def get_product(self, organization_id: str, product_id: str) -> ProductRead | None:
        product = self.products.get(product_id)
        if product is None or product.organization_id != organization_id:
            return None
        return product

    async def list_products(self, organization_id: str) -> list[ProductRead]:
        return sorted(
            (p for p in self.products.values() if p.organization_id == organization_id),
            key=lambda p: p.product_name,
        )

    async def record_scan(
        self,
        organization_id: str,
        product_id: str,
        competitor_price: float,
        action: PriceAction,
        checked_at: datetime,
    ) -> ProductRead:
        product = await self.get_product(organization_id, product_id)
        if product is None:
            raise ValueError(f"Product {product_id} not found")
        updated = product.model_copy(
            update={
                "competitor_price": competitor_price,
                "price_action_taken": action,
                "last_checked": checked_at,
            }
        )
        self.products[product_id] = updated
        return updated

    async def update_my_price(self, organization_id: str, product_id: str, new_price: float) -> ProductRead:
        product = await self.get_product(organization_id, product_id)
        if product is None:
            raise ValueError(f"Product {product_id} not found")
        updated = product.model_copy(update={"my_price": new_price})
        self.products[product_id] = updated
        return updated

    async def create_alert(
        self, organization_id: str, product_id: str | None, alert: CompetitorAlert
    ) -> CompetitorAlertRead:
        stored = CompetitorAlertRead(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            product_id=product_id,
            **alert.model_dump(),
        )
        self.alerts.append(stored)
        return stored

    async def list_alerts(self, organization_id: str, limit: int = 50) -> list[CompetitorAlertRead]:
        return [a for a in reversed(self.alerts) if a.organization_id == organization_id][:limit]


class InMemoryOutreachRepository:
    def __init__(self) -> None:
        self.signals: dict[str, SignalRead] = {}
        self.variants: dict[str, PromptVariant] = {}

    async def store_signals(self, organization_id: str, signals: list[SignalInput]) -> list[SignalRead]:
        stored = []
        for s in signals:
            signal = SignalRead(
                id=str(uuid.uuid4()),
                organization_id=organization_id,
                company_name=s.company_name,
                signal_type=s.signal_type or SignalType.GENERAL,
                headline=s.headline,
                summary=s.summary,
                source_url=s.source_url,
                relevance_score=s.relevance_score,
            )
            self.signals[signal.id] = signal
            stored.append(signal)
        return stored

    async def get_signal(self, organization_id: str, signal_id: str) -> SignalRead | None:
        signal = self.signals.get(signal_id)
        if signal is None or signal.organization_id != organization_id:
            return None
        return signal

    async def list_pending_signals(self, organization_id: str, limit: int) -> list[SignalRead]:
        pending = [
            s
            for s in self.signals.values()
            if s.organization_id == organization_id and s.outreach_status == OutreachStatus.PENDING
        ]
        pending.sort(key=lambda s: (s.relevance_score is None, -(s.relevance_score or 0)))
        return pending[:limit]

    async def save_draft(
        self,
        organization_id: str,
        signal_id: str,
        draft_email: str,
        relevance_score: float | None,
        variant_id: str | None,
        processed_at: datetime,
    ) -> SignalRead:
        signal = await self.get_signal(organization_id, signal_id)
        if signal is None:
            raise ValueError(f"Signal {signal_id} not found")
        update: dict[str, Any] = {
            "draft_email": draft_email,
            "outreach_status": OutreachStatus.DRAFTED,
            "processed_at": processed_at,
            "variant_id": variant_id,
        }
        if relevance_score is not None:
            update["relevance_score"] = relevance_score
        updated = signal.model_copy(update=update)
        self.signals[signal_id] = updated
        return updated

    async def set_signal_status(
        self, organization_id: str, signal_id: str, status: OutreachStatus
    ) -> SignalRead:
        signal = await self.get_signal(organization_id, signal_id)
        if signal is None:
            raise ValueError(f"Signal {signal_id} not found")
        updated = signal.model_copy(update={"outreach_status": status})
        self.signals[signal_id] = updated
        return updated

    async def create_variant(self, organization_id: str, data: PromptVariantCreate) -> PromptVariant:
        variant = PromptVariant(
            id=str(uuid.uuid4()), variant_tag=data.variant_tag, prompt_text=data.prompt_text
        )
        self.variants[variant.id] = variant
        return variant

    async def list_active_variants(self, organization_id: str) -> list[PromptVariant]:
        return [v for v in self.variants.values() if v.is_active]

    async def increment_variant_uses(self, organization_id: str, variant_id: str) -> None:
        v = self.variants[variant_id]
        self.variants[variant_id] = v.model_copy(update={"uses": v.uses + 1})

    async def increment_variant_successes(self, organization_id: str, variant_id: str) -> None:
        v = self.variants[variant_id]
        self.variants[variant_id] = v.model_copy(update={"successes": v.successes + 1})


class InMemoryActivityRepository:
    def __init__(self) -> None:
        self.executions: list[ExecutionLogRead] = []
        self.actions: list[AutonomousActionRead] = []

    async def log_execution(self, organization_id: str, data: ExecutionLogCreate) -> ExecutionLogRead:
        log = ExecutionLogRead(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            executed_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self.executions.append(log)
        return log

    async def record_action(
        self, organization_id: str, data: AutonomousActionCreate
    ) -> AutonomousActionRead:
        action = AutonomousActionRead(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self.actions.append(action)
        return action

    async def list_executions(self, organization_id: str, limit: int = 50) -> list[ExecutionLogRead]:
        return self.executions[-limit:]

    async def list_actions(
        self, organization_id: str, agent_type: str | None = None, limit: int = 50
    ) -> list[AutonomousActionRead]:
        return [a for a in self.actions if agent_type is None or a.agent_type == agent_type][:limit]


# ── Fixtures ─────────────────────────────────────────────────────────────────


def fake_user(role: str = "admin") -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid.uuid4(),
        organization_id=ORG_ID,
        email=f"{role}@acme.test",
        name=role.title(),
        role=role,
        is_active=True,
    )


@pytest.fixture
def organization() -> OrganizationContext:
    return ORG


@pytest.fixture
def org_id() -> str:
    return ORG_ID


@pytest.fixture
def approval_repo() -> InMemoryApprovalRepository:
    return InMemoryApprovalRepository()


@pytest.fixture
def pricing_repo() -> InMemoryPricingRepository:
    return InMemoryPricingRepository()


@pytest.fixture
def outreach_repo() -> InMemoryOutreachRepository:
    return InMemoryOutreachRepository()


@pytest.fixture
def activity_repo() -> InMemoryActivityRepository:
    return InMemoryActivityRepository()


@pytest.fixture
def make_app():
    """Factory for a bare FastAPI app with mocked auth.

    Usage: ``make_app([router], role="operator", approval_service=svc)``.
    Keyword arguments other than ``role`` are set on app.state.
    """
    from src.opsdeck.api.deps import get_current_user, get_organization

    def _make(routers: list, role: str = "admin", **state: Any) -> FastAPI:
        app = FastAPI()
        for router in routers:
            app.include_router(router)
        user = fake_user(role)
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_organization] = lambda: ORG
        app.state.user = user
        for name, value in state.items():
            setattr(app.state, name, value)
        return app

    return _make


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the module's ``app`` fixture."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
