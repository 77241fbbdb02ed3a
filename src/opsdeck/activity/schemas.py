"""Schemas for agent execution logs and autonomous actions."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ExecutionLogCreate(BaseModel):
    action_type: str
    reasoning: str | None = None
    action_details: dict[str, Any] = Field(default_factory=dict)
    result: str | None = "completed"
    error_message: str | None = None


class ExecutionLogRead(ExecutionLogCreate):
    id: str
    organization_id: str
    executed_at: datetime | None = None


class AutonomousActionCreate(BaseModel):
    """One decision made by an agent, auto-executed or parked for approval."""

    agent_type: str
    action_type: str
    target_entity_type: str | None = None
    target_entity_id: str | None = None
    decision: str | None = None
    reasoning: str | None = None
    confidence_score: float | None = None
    value_impact: float | None = None
    requires_approval: bool = False
    was_auto_executed: bool = False
    execution_result: dict[str, Any] = Field(default_factory=dict)
    executed_at: datetime | None = None


class AutonomousActionRead(AutonomousActionCreate):
    id: str
    organization_id: str
    created_at: datetime | None = None
