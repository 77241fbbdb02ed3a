"""Agent activity tables -- execution logs and autonomous action records.

agent_execution_logs holds one row per agent run (pricing enforcement pass,
outreach draft, ...). autonomous_actions holds one row per individual
decision an agent made, whether it executed on its own or was parked for
approval.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.opsdeck.core.database import OrgBase


class AgentExecutionLogModel(OrgBase):
    __tablename__ = "agent_execution_logs"
    __table_args__ = {"schema": "org"}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    action_type: Mapped[str] = mapped_column(String(100), nullable=False)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_details: Mapped[dict] = mapped_column(JSON, default=dict, server_default=text("'{}'::json"))
    result: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class AutonomousActionModel(OrgBase):
    __tablename__ = "autonomous_actions"
    __table_args__ = {"schema": "org"}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    agent_type: Mapped[str] = mapped_column(String(100), nullable=False)
    action_type: Mapped[str] = mapped_column(String(100), nullable=False)
    target_entity_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    target_entity_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    decision: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    value_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    was_auto_executed: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    execution_result: Mapped[dict] = mapped_column(JSON, default=dict, server_default=text("'{}'::json"))
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
