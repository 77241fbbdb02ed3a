"""Outreach repository -- news signals and prompt variant counters.

All methods take organization_id first. Variant counters are bumped with
UPDATE ... SET uses = uses + 1 so concurrent drafts do not lose counts.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.outreach.models import NewsSignalModel, PromptVariantModel
from src.opsdeck.outreach.schemas import (
    OutreachStatus,
    PromptVariant,
    PromptVariantCreate,
    SignalInput,
    SignalRead,
    SignalType,
)

logger = structlog.get_logger(__name__)

SNIPER_AGENT_TYPE = "sniper_email"


def _model_to_signal(model: NewsSignalModel) -> SignalRead:
    return SignalRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        company_name=model.company_name,
        signal_type=SignalType(model.signal_type),
        headline=model.headline,
        summary=model.summary,
        source_url=model.source_url,
        relevance_score=model.relevance_score,
        outreach_status=OutreachStatus(model.outreach_status),
        draft_email=model.draft_email,
        variant_id=str(model.variant_id) if model.variant_id else None,
        processed_at=model.processed_at,
        created_at=model.created_at,
    )


def _model_to_variant(model: PromptVariantModel) -> PromptVariant:
    return PromptVariant(
        id=str(model.id),
        variant_tag=model.variant_tag,
        prompt_text=model.prompt_text,
        uses=model.uses or 0,
        successes=model.successes or 0,
        is_active=bool(model.is_active),
    )


def _parse_uuid(value: str | None) -> uuid.UUID | None:
    try:
        return uuid.UUID(value) if value else None
    except ValueError:
        return None


class OutreachRepository:
    """Async persistence for news_signals and prompt_variants.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Signals ─────────────────────────────────────────────────────────────

    async def store_signals(
        self, organization_id: str, signals: list[SignalInput]
    ) -> list[SignalRead]:
        """Insert signals as pending. ``signal_type`` must already be resolved."""
        async for session in self._session_factory():
            models = [
                NewsSignalModel(
                    organization_id=uuid.UUID(organization_id),
                    company_name=s.company_name,
                    signal_type=(s.signal_type or SignalType.GENERAL).value,
                    headline=s.headline,
                    summary=s.summary,
                    source_url=s.source_url,
                    relevance_score=s.relevance_score,
                    outreach_status=OutreachStatus.PENDING.value,
                )
                for s in signals
            ]
            session.add_all(models)
            await session.commit()
            for model in models:
                await session.refresh(model)
            return [_model_to_signal(m) for m in models]

    async def get_signal(self, organization_id: str, signal_id: str) -> SignalRead | None:
        sid = _parse_uuid(signal_id)
        if sid is None:
            return None
        async for session in self._session_factory():
            stmt = select(NewsSignalModel).where(
                NewsSignalModel.organization_id == uuid.UUID(organization_id),
                NewsSignalModel.id == sid,
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_signal(model) if model else None

    async def list_pending_signals(self, organization_id: str, limit: int) -> list[SignalRead]:
        """Pending signals, most relevant first."""
        async for session in self._session_factory():
            stmt = (
                select(NewsSignalModel)
                .where(
                    NewsSignalModel.organization_id == uuid.UUID(organization_id),
                    NewsSignalModel.outreach_status == OutreachStatus.PENDING.value,
                )
                .order_by(
                    NewsSignalModel.relevance_score.desc().nulls_last(),
                    NewsSignalModel.created_at,
                )
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_signal(m) for m in result.scalars().all()]

    async def save_draft(
        self,
        organization_id: str,
        signal_id: str,
        draft_email: str,
        relevance_score: float | None,
        variant_id: str | None,
        processed_at: datetime,
    ) -> SignalRead:
        async for session in self._session_factory():
            stmt = select(NewsSignalModel).where(
                NewsSignalModel.organization_id == uuid.UUID(organization_id),
                NewsSignalModel.id == uuid.UUID(signal_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Signal {signal_id} not found")
            model.draft_email = draft_email
            if relevance_score is not None:
                model.relevance_score = relevance_score
            model.outreach_status = OutreachStatus.DRAFTED.value
            model.processed_at = processed_at
            model.variant_id = _parse_uuid(variant_id)
            await session.commit()
            await session.refresh(model)
            return _model_to_signal(model)

    async def set_signal_status(
        self, organization_id: str, signal_id: str, status: OutreachStatus
    ) -> SignalRead:
        async for session in self._session_factory():
            stmt = select(NewsSignalModel).where(
                NewsSignalModel.organization_id == uuid.UUID(organization_id),
                NewsSignalModel.id == uuid.UUID(signal_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Signal {signal_id} not found")
            model.outreach_status = status.value
            await session.commit()
            await session.refresh(model)
            return _model_to_signal(model)

    # ── Variants ────────────────────────────────────────────────────────────

    async def create_variant(
        self, organization_id: str, data: PromptVariantCreate, agent_type: str = SNIPER_AGENT_TYPE
    ) -> PromptVariant:
        async for session in self._session_factory():
            model = PromptVariantModel(
                organization_id=uuid.UUID(organization_id),
                agent_type=agent_type,
                variant_tag=data.variant_tag,
                prompt_text=data.prompt_text,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_variant(model)

    async def list_active_variants(
        self, organization_id: str, agent_type: str = SNIPER_AGENT_TYPE
    ) -> list[PromptVariant]:
        async for session in self._session_factory():
            stmt = select(PromptVariantModel).where(
                PromptVariantModel.organization_id == uuid.UUID(organization_id),
                PromptVariantModel.agent_type == agent_type,
                PromptVariantModel.is_active.is_(True),
            )
            result = await session.execute(stmt)
            return [_model_to_variant(m) for m in result.scalars().all()]

    async def increment_variant_uses(self, organization_id: str, variant_id: str) -> None:
        async for session in self._session_factory():
            await session.execute(
                update(PromptVariantModel)
                .where(
                    PromptVariantModel.organization_id == uuid.UUID(organization_id),
                    PromptVariantModel.id == uuid.UUID(variant_id),
                )
                .values(uses=PromptVariantModel.uses + 1)
            )
            await session.commit()

    async def increment_variant_successes(self, organization_id: str, variant_id: str) -> None:
        async for session in self._session_factory():
            await session.execute(
                update(PromptVariantModel)
                .where(
                    PromptVariantModel.organization_id == uuid.UUID(organization_id),
                    PromptVariantModel.id == uuid.UUID(variant_id),
                )
                .values(successes=PromptVariantModel.successes + 1)
            )
            await session.commit()
