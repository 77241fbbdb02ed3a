"""Governance endpoints -- action risk tiers, role permissions, cooldowns."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from src.opsdeck.api.deps import get_current_user, get_organization, get_risk_registry_dep
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.governance.roles import (
    ROLE_HIERARCHY,
    Role,
    can_perform_action,
    get_permissions,
    minimum_role_for,
)
from src.opsdeck.governance.schemas import ActionCategory, CooldownCheck, RiskTier, TieredAction
from src.opsdeck.models.organization import User

router = APIRouter(prefix="/api/v1/governance", tags=["governance"])


class RolePermissions(BaseModel):
    role: Role
    permissions: list[str]


class ActionCheckRequest(BaseModel):
    action: str


class ActionCheckResponse(BaseModel):
    """Everything the frontend needs before offering an action to a user."""

    action: str
    allowed: bool
    tier: RiskTier
    automatable: bool
    requires_approval: bool
    minimum_role: Role | None = None
    cooldown: CooldownCheck


@router.get("/tiers", response_model=list[TieredAction])
async def list_tiers(
    tier: RiskTier | None = Query(default=None),
    category: ActionCategory | None = Query(default=None),
    user: User = Depends(get_current_user),
    registry=Depends(get_risk_registry_dep),
):
    actions = registry.actions_by_tier(tier) if tier is not None else registry.all_actions()
    if category is not None:
        actions = [a for a in actions if a.category == category]
    return actions


@router.get("/tiers/{action}", response_model=TieredAction)
async def get_tier(
    action: str,
    user: User = Depends(get_current_user),
    registry=Depends(get_risk_registry_dep),
):
    tiered = registry.get_tier(action)
    if tiered is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown action: {action}")
    return tiered


@router.get("/permissions", response_model=list[RolePermissions])
async def list_role_permissions(user: User = Depends(get_current_user)):
    """The full role -> permission table, lowest role first."""
    return [
        RolePermissions(role=role, permissions=sorted(get_permissions(role)))
        for role in ROLE_HIERARCHY
    ]


@router.post("/check", response_model=ActionCheckResponse)
async def check_action(
    body: ActionCheckRequest,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    registry=Depends(get_risk_registry_dep),
):
    """Check whether the current user may take ``action`` and under what conditions."""
    return ActionCheckResponse(
        action=body.action,
        allowed=can_perform_action(user.role, body.action),
        tier=registry.get_risk_level(body.action),
        automatable=registry.is_automatable(body.action),
        requires_approval=registry.requires_approval(body.action),
        minimum_role=minimum_role_for(body.action),
        cooldown=registry.check_cooldown(organization.organization_id, body.action),
    )


@router.get("/cooldown/{action}", response_model=CooldownCheck)
async def get_cooldown(
    action: str,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    registry=Depends(get_risk_registry_dep),
):
    return registry.check_cooldown(organization.organization_id, action)


@router.post("/cooldown/{action}", response_model=CooldownCheck)
async def record_execution(
    action: str,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    registry=Depends(get_risk_registry_dep),
):
    """Record that ``action`` just ran; 429 while its cooldown is still active."""
    check = registry.check_cooldown(organization.organization_id, action)
    if not check.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Action {action} is cooling down for {check.remaining_minutes} more minutes",
        )
    registry.record_execution(organization.organization_id, action)
    return registry.check_cooldown(organization.organization_id, action)
