"""Approval workflow for high-risk actions.

An ApprovalService files approval requests against a static rule table,
collects sign-offs until the rule's quorum is met, and moves stale requests
through escalation and expiry when swept.

Approve/reject never raise for user-facing refusals (wrong role, duplicate
approval, request no longer pending). They return an ApprovalDecision whose
message is shown to the user as-is. Only filing a request for an action that
has no rule raises ApprovalRuleNotFound.

Listeners registered with on_event() are called with (event, request) after
every state change. A failing listener is logged and does not affect the
request.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from src.opsdeck.governance.repository import ApprovalRepository
from src.opsdeck.governance.risk_tiers import RiskTierRegistry, get_risk_registry
from src.opsdeck.governance.roles import Role, has_role
from src.opsdeck.governance.schemas import (
    ApprovalDecision,
    ApprovalEvent,
    ApprovalRecord,
    ApprovalRequestCreate,
    ApprovalRequestRead,
    ApprovalRule,
    ApprovalStatus,
    SweepResult,
)

logger = structlog.get_logger(__name__)

ApprovalListener = Callable[[ApprovalEvent, ApprovalRequestRead], Any]


class ApprovalRuleNotFound(Exception):
    """Raised when a request is filed for an action with no approval rule."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"No approval rule for action: {action}")


DEFAULT_RULES: list[ApprovalRule] = [
    ApprovalRule(
        action="large_trade",
        required_approvers=1,
        approver_roles=[Role.OPERATOR, Role.ADMIN],
        expiration_hours=1,
        escalation_hours=0.5,
        escalation_to=[Role.ADMIN],
    ),
    ApprovalRule(
        action="modify_strategy",
        required_approvers=1,
        approver_roles=[Role.ADMIN],
        expiration_hours=24,
        escalation_hours=12,
    ),
    ApprovalRule(
        action="enable_live_trading",
        required_approvers=2,
        approver_roles=[Role.ADMIN],
        expiration_hours=24,
        escalation_hours=4,
    ),
    ApprovalRule(
        action="modify_risk_limits",
        required_approvers=2,
        approver_roles=[Role.ADMIN],
        expiration_hours=48,
        escalation_hours=24,
    ),
    ApprovalRule(
        action="disable_circuit_breakers",
        required_approvers=2,
        approver_roles=[Role.ADMIN],
        expiration_hours=1,
        escalation_hours=0.25,
    ),
    ApprovalRule(
        action="approve_discount",
        required_approvers=1,
        approver_roles=[Role.OPERATOR],
        expiration_hours=24,
        escalation_hours=4,
        escalation_to=[Role.ADMIN],
    ),
    ApprovalRule(
        action="raise_price",
        required_approvers=1,
        approver_roles=[Role.ADMIN],
        expiration_hours=48,
        escalation_hours=24,
    ),
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalService:
    """Files, decides, and sweeps approval requests for one process.

    Args:
        repository: ApprovalRepository (or an in-memory double in tests).
        registry: RiskTierRegistry used by needs_approval(). Defaults to the
            process-wide registry.
        rules: Approval rules. Defaults to DEFAULT_RULES.
    """

    def __init__(
        self,
        repository: ApprovalRepository,
        registry: RiskTierRegistry | None = None,
        rules: list[ApprovalRule] | None = None,
    ) -> None:
        self._repo = repository
        self._registry = registry or get_risk_registry()
        self._rules: dict[str, ApprovalRule] = {
            r.action: r for r in (rules if rules is not None else DEFAULT_RULES)
        }
        self._listeners: list[ApprovalListener] = []

    # ── Rules ───────────────────────────────────────────────────────────────

    def get_rule(self, action: str) -> ApprovalRule | None:
        return self._rules.get(action)

    def list_rules(self) -> list[ApprovalRule]:
        return list(self._rules.values())

    def needs_approval(self, action: str) -> bool:
        return self._registry.requires_approval(action)

    def _can_approve(
        self, rule: ApprovalRule | None, role: str | Role, escalated: bool = False
    ) -> bool:
        if rule is None:
            return has_role(role, Role.ADMIN)
        roles = rule.approver_roles + (rule.escalation_to if escalated else [])
        return any(has_role(role, r) for r in roles)

    # ── Events ──────────────────────────────────────────────────────────────

    def on_event(self, listener: ApprovalListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: ApprovalEvent, request: ApprovalRequestRead) -> None:
        logger.info(
            "approvals.event",
            event_type=event.value,
            request_id=request.id,
            action=request.action,
            organization_id=request.organization_id,
        )
        for listener in list(self._listeners):
            try:
                result = listener(event, request)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning(
                    "approvals.listener_failed",
                    event_type=event.value,
                    request_id=request.id,
                    exc_info=True,
                )

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def create_request(
        self,
        organization_id: str,
        action: str,
        requested_by: str,
        title: str,
        payload: dict[str, Any] | None = None,
        value_impact: float | None = None,
        now: datetime | None = None,
    ) -> ApprovalRequestRead:
        """File a pending approval request.

        Raises:
            ApprovalRuleNotFound: If ``action`` has no approval rule.
        """
        rule = self._rules.get(action)
        if rule is None:
            raise ApprovalRuleNotFound(action)

        now = now or _now()
        request = await self._repo.create_request(
            organization_id,
            ApprovalRequestCreate(
                action=action,
                title=title,
                requested_by=requested_by,
                payload=payload or {},
                value_impact=value_impact,
            ),
            expires_at=now + timedelta(hours=rule.expiration_hours),
            escalate_at=now + timedelta(hours=rule.escalation_hours),
        )
        await self._emit(ApprovalEvent.CREATED, request)
        return request

    async def approve(
        self,
        organization_id: str,
        request_id: str,
        user_id: str,
        role: str | Role,
        now: datetime | None = None,
    ) -> ApprovalDecision:
        now = now or _now()
        request = await self._repo.get_request(organization_id, request_id)
        if request is None:
            return ApprovalDecision(success=False, message="Approval request not found")

        if request.status != ApprovalStatus.PENDING:
            return ApprovalDecision(
                success=False,
                message=f"Request is already {request.status.value}",
                request=request,
            )

        if now >= request.expires_at:
            return await self._expire(organization_id, request_id, now)

        rule = self._rules.get(request.action)
        if not self._can_approve(rule, role, request.escalated):
            return ApprovalDecision(
                success=False,
                message="You do not have permission to approve this request",
                request=request,
            )

        if any(a.user_id == user_id for a in request.approvals):
            return ApprovalDecision(
                success=False,
                message="You have already approved this request",
                request=request,
            )

        required = rule.required_approvers if rule else 1
        updated, recorded = await self._repo.record_approval(
            organization_id,
            request_id,
            ApprovalRecord(user_id=user_id, role=Role(role), approved_at=now),
            required,
        )
        if not recorded:
            # Lost a race with another decision on the same request
            if updated.status != ApprovalStatus.PENDING:
                message = f"Request is already {updated.status.value}"
            else:
                message = "You have already approved this request"
            return ApprovalDecision(success=False, message=message, request=updated)

        if updated.status == ApprovalStatus.APPROVED:
            await self._emit(ApprovalEvent.APPROVED, updated)
            return ApprovalDecision(success=True, message="Request approved", request=updated)

        await self._emit(ApprovalEvent.PARTIAL_APPROVAL, updated)
        return ApprovalDecision(
            success=True,
            message=f"Approval recorded ({len(updated.approvals)}/{required})",
            request=updated,
        )

    async def reject(
        self,
        organization_id: str,
        request_id: str,
        user_id: str,
        role: str | Role,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> ApprovalDecision:
        now = now or _now()
        request = await self._repo.get_request(organization_id, request_id)
        if request is None:
            return ApprovalDecision(success=False, message="Approval request not found")

        if request.status != ApprovalStatus.PENDING:
            return ApprovalDecision(
                success=False,
                message=f"Request is already {request.status.value}",
                request=request,
            )

        if now >= request.expires_at:
            return await self._expire(organization_id, request_id, now)

        if not self._can_approve(self._rules.get(request.action), role, request.escalated):
            return ApprovalDecision(
                success=False,
                message="You do not have permission to reject this request",
                request=request,
            )

        updated = await self._repo.update_request(
            organization_id,
            request_id,
            status=ApprovalStatus.REJECTED,
            approver_id=user_id,
            rejection_reason=reason,
            resolved_at=now,
        )
        await self._emit(ApprovalEvent.REJECTED, updated)
        return ApprovalDecision(success=True, message="Request rejected", request=updated)

    async def _expire(
        self, organization_id: str, request_id: str, now: datetime
    ) -> ApprovalDecision:
        expired = await self._repo.update_request(
            organization_id,
            request_id,
            status=ApprovalStatus.EXPIRED,
            resolved_at=now,
        )
        await self._emit(ApprovalEvent.EXPIRED, expired)
        return ApprovalDecision(success=False, message="Request has expired", request=expired)

    async def sweep(self, organization_id: str, now: datetime | None = None) -> SweepResult:
        """Expire and escalate stale pending requests for one organization."""
        now = now or _now()
        result = SweepResult()

        for request in await self._repo.list_requests(organization_id, ApprovalStatus.PENDING):
            if now >= request.expires_at:
                expired = await self._repo.update_request(
                    organization_id,
                    request.id,
                    status=ApprovalStatus.EXPIRED,
                    resolved_at=now,
                )
                result.expired += 1
                await self._emit(ApprovalEvent.EXPIRED, expired)
            elif now >= request.escalate_at and not request.escalated:
                escalated = await self._repo.update_request(
                    organization_id, request.id, escalated=True
                )
                result.escalated += 1
                await self._emit(ApprovalEvent.ESCALATED, escalated)

        if result.expired or result.escalated:
            logger.info(
                "approvals.swept",
                organization_id=organization_id,
                expired=result.expired,
                escalated=result.escalated,
            )
        return result

    # ── Queries ─────────────────────────────────────────────────────────────

    async def get_request(
        self, organization_id: str, request_id: str
    ) -> ApprovalRequestRead | None:
        return await self._repo.get_request(organization_id, request_id)

    async def list_requests(
        self, organization_id: str, status: ApprovalStatus | None = None
    ) -> list[ApprovalRequestRead]:
        return await self._repo.list_requests(organization_id, status)

    async def list_pending(
        self, organization_id: str, now: datetime | None = None
    ) -> list[ApprovalRequestRead]:
        """Pending requests that have not passed ``expires_at``.

        Requests past their deadline stay stored as pending until the next
        sweep but are no longer listed.
        """
        now = now or _now()
        return [
            r
            for r in await self._repo.list_requests(organization_id, ApprovalStatus.PENDING)
            if r.expires_at > now
        ]

    async def list_for_approver(
        self, organization_id: str, role: str | Role, now: datetime | None = None
    ) -> list[ApprovalRequestRead]:
        """Pending requests this role may decide, including escalations to it."""
        visible = []
        for request in await self.list_pending(organization_id, now):
            rule = self._rules.get(request.action)
            if self._can_approve(rule, role, request.escalated):
                visible.append(request)
        return visible
