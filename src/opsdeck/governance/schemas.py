"""Pydantic schemas for action risk tiers and approval requests."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.opsdeck.governance.roles import Role


# ── Enums ───────────────────────────────────────────────────────────────────


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActionCategory(str, Enum):
    DATA = "data"
    TRADING = "trading"
    AUTOMATION = "automation"
    CONFIGURATION = "configuration"
    USER_MANAGEMENT = "user_management"
    PRICING = "pricing"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalEvent(str, Enum):
    """Lifecycle notifications emitted to approval listeners."""

    CREATED = "created"
    PARTIAL_APPROVAL = "partial_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    ESCALATED = "escalated"


# ── Risk Tiers ──────────────────────────────────────────────────────────────


class TieredAction(BaseModel):
    """Risk classification for one action type."""

    action: str
    category: ActionCategory
    tier: RiskTier
    description: str
    automatable: bool
    requires_approval: bool
    cooldown_minutes: float | None = None


class CooldownCheck(BaseModel):
    allowed: bool
    remaining_minutes: float | None = None


# ── Approvals ───────────────────────────────────────────────────────────────


class ApprovalRule(BaseModel):
    """Who must sign off on an action, and how long they have."""

    action: str
    required_approvers: int = Field(ge=1)
    approver_roles: list[Role]
    expiration_hours: float = Field(gt=0)
    escalation_hours: float = Field(gt=0)
    escalation_to: list[Role] = Field(default_factory=list)


class ApprovalRecord(BaseModel):
    """A single sign-off on a request."""

    user_id: str
    role: Role
    approved_at: datetime


class ApprovalRequestCreate(BaseModel):
    """Schema for filing a new approval request."""

    action: str
    title: str
    requested_by: str
    payload: dict[str, Any] = Field(default_factory=dict)
    value_impact: float | None = None


class ApprovalRequestRead(BaseModel):
    """Schema for reading an approval request (all persisted fields)."""

    id: str
    organization_id: str
    action: str
    title: str
    requested_by: str
    payload: dict[str, Any] = Field(default_factory=dict)
    value_impact: float | None = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    approvals: list[ApprovalRecord] = Field(default_factory=list)
    approver_id: str | None = None
    rejection_reason: str | None = None
    escalated: bool = False
    expires_at: datetime
    escalate_at: datetime
    resolved_at: datetime | None = None
    created_at: datetime | None = None


class ApprovalDecision(BaseModel):
    """Outcome of an approve/reject attempt, shown to the user as-is."""

    success: bool
    message: str
    request: ApprovalRequestRead | None = None


class SweepResult(BaseModel):
    expired: int = 0
    escalated: int = 0
