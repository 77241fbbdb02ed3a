"""Approval request endpoints.

Approve and reject answer 200 with an ApprovalDecision; a refusal (wrong
role, duplicate approval, request no longer pending) comes back as
``success: false`` with a message the frontend shows as-is. An unknown
request id is a 404.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.opsdeck.api.deps import get_approval_service, get_current_user, get_organization
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.governance.approvals import ApprovalRuleNotFound
from src.opsdeck.governance.schemas import (
    ApprovalDecision,
    ApprovalRequestRead,
    ApprovalRule,
    ApprovalStatus,
    SweepResult,
)
from src.opsdeck.models.organization import User

router = APIRouter(prefix="/api/v1/approvals", tags=["approvals"])


def _found(decision: ApprovalDecision) -> ApprovalDecision:
    if decision.request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=decision.message)
    return decision


class CreateApprovalRequest(BaseModel):
    action: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=300)
    payload: dict[str, Any] = Field(default_factory=dict)
    value_impact: float | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


@router.get("", response_model=list[ApprovalRequestRead])
async def list_requests(
    status_filter: ApprovalStatus | None = Query(default=None, alias="status"),
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    return await service.list_requests(organization.organization_id, status_filter)


@router.get("/pending", response_model=list[ApprovalRequestRead])
async def list_pending(
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    return await service.list_pending(organization.organization_id)


@router.get("/mine", response_model=list[ApprovalRequestRead])
async def list_mine(
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    """Pending requests the current user's role can decide."""
    return await service.list_for_approver(organization.organization_id, user.role)


@router.get("/rules", response_model=list[ApprovalRule])
async def list_rules(
    user: User = Depends(get_current_user),
    service=Depends(get_approval_service),
):
    return service.list_rules()


@router.post("", response_model=ApprovalRequestRead, status_code=status.HTTP_201_CREATED)
async def create_request(
    body: CreateApprovalRequest,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    try:
        return await service.create_request(
            organization.organization_id,
            action=body.action,
            requested_by=str(user.id),
            title=body.title,
            payload=body.payload,
            value_impact=body.value_impact,
        )
    except ApprovalRuleNotFound as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/sweep", response_model=SweepResult)
async def sweep(
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    """Expire and escalate stale requests now instead of waiting for the background loop."""
    return await service.sweep(organization.organization_id)


@router.get("/{request_id}", response_model=ApprovalRequestRead)
async def get_request(
    request_id: str,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    request = await service.get_request(organization.organization_id, request_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval request not found")
    return request


@router.post("/{request_id}/approve", response_model=ApprovalDecision)
async def approve(
    request_id: str,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    decision = await service.approve(
        organization.organization_id, request_id, user_id=str(user.id), role=user.role
    )
    return _found(decision)


@router.post("/{request_id}/reject", response_model=ApprovalDecision)
async def reject(
    request_id: str,
    body: RejectRequest,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_approval_service),
):
    decision = await service.reject(
        organization.organization_id,
        request_id,
        user_id=str(user.id),
        role=user.role,
        reason=body.reason,
    )
    return _found(decision)
