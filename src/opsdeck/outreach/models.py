"""Outreach tables -- news signals and prompt variants."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.opsdeck.core.database import OrgBase


class PromptVariantModel(OrgBase):
    """An outreach system prompt competing for use under epsilon-greedy."""

    __tablename__ = "prompt_variants"
    __table_args__ = (
        UniqueConstraint("organization_id", "agent_type", "variant_tag", name="uq_prompt_variants_org_tag"),
        {"schema": "org"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    agent_type: Mapped[str] = mapped_column(String(100), nullable=False)
    variant_tag: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    uses: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    successes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class NewsSignalModel(OrgBase):
    """A company news item that may warrant an outreach email."""

    __tablename__ = "news_signals"
    __table_args__ = (
        Index("ix_news_signals_org_status", "organization_id", "outreach_status"),
        {"schema": "org"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    company_name: Mapped[str] = mapped_column(String(300), nullable=False)
    signal_type: Mapped[str] = mapped_column(String(50), nullable=False)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    relevance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    outreach_status: Mapped[str] = mapped_column(String(20), default="pending", server_default=text("'pending'"))
    draft_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("org.prompt_variants.id", ondelete="SET NULL"),
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
