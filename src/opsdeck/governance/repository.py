"""Approval request repository -- async CRUD over approval_requests.

Same session_factory callable pattern as the other repositories. Every
method takes organization_id first. Approvals are serialized with
model_dump(mode="json") into the JSON column.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.governance.models import ApprovalRequestModel
from src.opsdeck.governance.schemas import (
    ApprovalRecord,
    ApprovalRequestCreate,
    ApprovalRequestRead,
    ApprovalStatus,
)

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "status",
    "approvals",
    "approver_id",
    "rejection_reason",
    "escalated",
    "resolved_at",
})


def _model_to_request(model: ApprovalRequestModel) -> ApprovalRequestRead:
    return ApprovalRequestRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        action=model.action,
        title=model.title,
        requested_by=model.requested_by,
        payload=model.payload or {},
        value_impact=model.value_impact,
        status=ApprovalStatus(model.status),
        approvals=[ApprovalRecord.model_validate(a) for a in (model.approvals or [])],
        approver_id=model.approver_id,
        rejection_reason=model.rejection_reason,
        escalated=bool(model.escalated),
        expires_at=model.expires_at,
        escalate_at=model.escalate_at,
        resolved_at=model.resolved_at,
        created_at=model.created_at,
    )


class ApprovalRepository:
    """Async persistence for approval requests.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_request(
        self,
        organization_id: str,
        data: ApprovalRequestCreate,
        expires_at: datetime,
        escalate_at: datetime,
    ) -> ApprovalRequestRead:
        async for session in self._session_factory():
            model = ApprovalRequestModel(
                organization_id=uuid.UUID(organization_id),
                action=data.action,
                title=data.title,
                requested_by=data.requested_by,
                payload=data.payload,
                value_impact=data.value_impact,
                status=ApprovalStatus.PENDING.value,
                approvals=[],
                escalated=False,
                expires_at=expires_at,
                escalate_at=escalate_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_request(model)

    async def get_request(
        self, organization_id: str, request_id: str
    ) -> ApprovalRequestRead | None:
        async for session in self._session_factory():
            try:
                rid = uuid.UUID(request_id)
            except ValueError:
                return None
            stmt = select(ApprovalRequestModel).where(
                ApprovalRequestModel.organization_id == uuid.UUID(organization_id),
                ApprovalRequestModel.id == rid,
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_request(model)

    async def list_requests(
        self, organization_id: str, status: ApprovalStatus | None = None
    ) -> list[ApprovalRequestRead]:
        async for session in self._session_factory():
            stmt = select(ApprovalRequestModel).where(
                ApprovalRequestModel.organization_id == uuid.UUID(organization_id),
            )
            if status is not None:
                stmt = stmt.where(ApprovalRequestModel.status == status.value)
            stmt = stmt.order_by(ApprovalRequestModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_request(m) for m in result.scalars().all()]

    async def update_request(
        self, organization_id: str, request_id: str, **fields: Any
    ) -> ApprovalRequestRead:
        """Apply field updates to a request.

        Raises:
            ValueError: If the request does not exist or a field is not updatable.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        async for session in self._session_factory():
            stmt = select(ApprovalRequestModel).where(
                ApprovalRequestModel.organization_id == uuid.UUID(organization_id),
                ApprovalRequestModel.id == uuid.UUID(request_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Approval request {request_id} not found")

            for key, value in fields.items():
                if key == "approvals":
                    value = [
                        a.model_dump(mode="json") if isinstance(a, ApprovalRecord) else a
                        for a in value
                    ]
                elif key == "status" and isinstance(value, ApprovalStatus):
                    value = value.value
                setattr(model, key, value)

            await session.commit()
            await session.refresh(model)
            return _model_to_request(model)

    async def record_approval(
        self,
        organization_id: str,
        request_id: str,
        record: ApprovalRecord,
        required_approvers: int,
    ) -> tuple[ApprovalRequestRead, bool]:
        """Append one approval and resolve the request once the quorum is met.

        The row is locked for the read-modify-write so concurrent approvers
        each see the other's sign-off. Nothing is appended when the request
        is no longer pending or ``record.user_id`` already approved it.

        Returns:
            The stored request and whether ``record`` was added.

        Raises:
            ValueError: If the request does not exist.
        """
        async for session in self._session_factory():
            # SELECT FOR UPDATE so concurrent approvals queue on the row
            stmt = (
                select(ApprovalRequestModel)
                .where(
                    ApprovalRequestModel.organization_id == uuid.UUID(organization_id),
                    ApprovalRequestModel.id == uuid.UUID(request_id),
                )
                .with_for_update()
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Approval request {request_id} not found")

            approvals = list(model.approvals or [])
            if model.status != ApprovalStatus.PENDING.value or any(
                a.get("user_id") == record.user_id for a in approvals
            ):
                return _model_to_request(model), False

            approvals.append(record.model_dump(mode="json"))
            model.approvals = approvals
            if len(approvals) >= required_approvers:
                model.status = ApprovalStatus.APPROVED.value
                model.approver_id = record.user_id
                model.resolved_at = record.approved_at

            await session.commit()
            await session.refresh(model)

            logger.info(
                "approvals.approval_recorded",
                organization_id=organization_id,
                request_id=request_id,
                approvals=len(approvals),
                required=required_approvers,
            )
            return _model_to_request(model), True
