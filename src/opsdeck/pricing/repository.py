"""Pricing repository -- products and competitor alerts.

All methods take organization_id first. Missing products come back as None
from reads and raise ValueError from updates.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.config import get_settings
from src.opsdeck.pricing.models import CompetitorAlertModel, PricingProductModel
from src.opsdeck.pricing.schemas import (
    CompetitorAlert,
    CompetitorAlertRead,
    PriceAction,
    ProductCreate,
    ProductRead,
)

logger = structlog.get_logger(__name__)


def _model_to_product(model: PricingProductModel) -> ProductRead:
    return ProductRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        product_name=model.product_name,
        my_price=model.my_price,
        my_cogs=model.my_cogs,
        min_margin_percent=model.min_margin_percent or get_settings().DEFAULT_MIN_MARGIN_PERCENT,
        competitor_url=model.competitor_url,
        competitor_selector=model.competitor_selector,
        competitor_price=model.competitor_price,
        price_action_taken=PriceAction(model.price_action_taken) if model.price_action_taken else None,
        last_checked=model.last_checked,
        created_at=model.created_at,
    )


def _model_to_alert(model: CompetitorAlertModel) -> CompetitorAlertRead:
    return CompetitorAlertRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        product_id=str(model.product_id) if model.product_id else None,
        alert_type=model.alert_type,
        severity=model.severity,
        message=model.message,
        recommendation=model.recommendation or "",
        created_at=model.created_at,
    )


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except (ValueError, TypeError):
        return None


class PricingRepository:
    """Async CRUD for pricing_products and competitor_alerts.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def _get_model(
        self, session: AsyncSession, organization_id: str, product_id: str
    ) -> PricingProductModel | None:
        pid = _parse_uuid(product_id)
        if pid is None:
            return None
        stmt = select(PricingProductModel).where(
            PricingProductModel.organization_id == uuid.UUID(organization_id),
            PricingProductModel.id == pid,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_product(self, organization_id: str, data: ProductCreate) -> ProductRead:
        async for session in self._session_factory():
            model = PricingProductModel(
                organization_id=uuid.UUID(organization_id),
                product_name=data.product_name,
                my_price=data.my_price,
                my_cogs=data.my_cogs,
                min_margin_percent=data.min_margin_percent or get_settings().DEFAULT_MIN_MARGIN_PERCENT,
                competitor_url=data.competitor_url,
                competitor_selector=data.competitor_selector,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_product(model)

    async def get_product(self, organization_id: str, product_id: str) -> ProductRead | None:
        async for session in self._session_factory():
            model = await self._get_model(session, organization_id, product_id)
            return _model_to_product(model) if model else None

    async def list_products(self, organization_id: str) -> list[ProductRead]:
        async for session in self._session_factory():
            stmt = (
                select(PricingProductModel)
                .where(PricingProductModel.organization_id == uuid.UUID(organization_id))
                .order_by(PricingProductModel.product_name)
            )
            result = await session.execute(stmt)
            return [_model_to_product(m) for m in result.scalars().all()]

    async def record_scan(
        self,
        organization_id: str,
        product_id: str,
        competitor_price: float,
        action: PriceAction,
        checked_at: datetime,
    ) -> ProductRead:
        async for session in self._session_factory():
            model = await self._get_model(session, organization_id, product_id)
            if model is None:
                raise ValueError(f"Product {product_id} not found")
            model.competitor_price = competitor_price
            model.price_action_taken = action.value
            model.last_checked = checked_at
            await session.commit()
            await session.refresh(model)
            return _model_to_product(model)

    async def update_my_price(
        self, organization_id: str, product_id: str, new_price: float
    ) -> ProductRead:
        async for session in self._session_factory():
            model = await self._get_model(session, organization_id, product_id)
            if model is None:
                raise ValueError(f"Product {product_id} not found")
            model.my_price = new_price
            await session.commit()
            await session.refresh(model)
            return _model_to_product(model)

    async def create_alert(
        self, organization_id: str, product_id: str | None, alert: CompetitorAlert
    ) -> CompetitorAlertRead:
        async for session in self._session_factory():
            model = CompetitorAlertModel(
                organization_id=uuid.UUID(organization_id),
                product_id=_parse_uuid(product_id) if product_id else None,
                alert_type=alert.alert_type,
                severity=alert.severity,
                message=alert.message,
                recommendation=alert.recommendation,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_alert(model)

    async def list_alerts(self, organization_id: str, limit: int = 50) -> list[CompetitorAlertRead]:
        async for session in self._session_factory():
            stmt = (
                select(CompetitorAlertModel)
                .where(CompetitorAlertModel.organization_id == uuid.UUID(organization_id))
                .order_by(CompetitorAlertModel.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_alert(m) for m in result.scalars().all()]
