"""Pricing tables -- tracked products and competitor price alerts."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.opsdeck.core.database import OrgBase


class PricingProductModel(OrgBase):
    """A product we sell, with its cost floor and the competitor page to watch."""

    __tablename__ = "pricing_products"
    __table_args__ = (
        UniqueConstraint("organization_id", "product_name", name="uq_pricing_products_org_name"),
        {"schema": "org"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    my_price: Mapped[float] = mapped_column(Float, nullable=False)
    my_cogs: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_margin_percent: Mapped[float] = mapped_column(Float, default=20.0, server_default=text("20"))
    competitor_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    competitor_selector: Mapped[str | None] = mapped_column(String(300), nullable=True)
    competitor_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_action_taken: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_checked: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class CompetitorAlertModel(OrgBase):
    __tablename__ = "competitor_alerts"
    __table_args__ = {"schema": "org"}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("org.pricing_products.id", ondelete="SET NULL"),
        nullable=True,
    )
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default="high", server_default=text("'high'"))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    recommendation: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
