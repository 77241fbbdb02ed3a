"""Activity repository -- append-only writes and recent reads for agent activity."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.opsdeck.activity.models import AgentExecutionLogModel, AutonomousActionModel
from src.opsdeck.activity.schemas import (
    AutonomousActionCreate,
    AutonomousActionRead,
    ExecutionLogCreate,
    ExecutionLogRead,
)

logger = structlog.get_logger(__name__)


def _model_to_log(model: AgentExecutionLogModel) -> ExecutionLogRead:
    return ExecutionLogRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        action_type=model.action_type,
        reasoning=model.reasoning,
        action_details=model.action_details or {},
        result=model.result,
        error_message=model.error_message,
        executed_at=model.executed_at,
    )


def _model_to_action(model: AutonomousActionModel) -> AutonomousActionRead:
    return AutonomousActionRead(
        id=str(model.id),
        organization_id=str(model.organization_id),
        agent_type=model.agent_type,
        action_type=model.action_type,
        target_entity_type=model.target_entity_type,
        target_entity_id=model.target_entity_id,
        decision=model.decision,
        reasoning=model.reasoning,
        confidence_score=model.confidence_score,
        value_impact=model.value_impact,
        requires_approval=bool(model.requires_approval),
        was_auto_executed=bool(model.was_auto_executed),
        execution_result=model.execution_result or {},
        executed_at=model.executed_at,
        created_at=model.created_at,
    )


class ActivityRepository:
    """Writes and lists agent execution logs and autonomous actions.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def log_execution(
        self, organization_id: str, data: ExecutionLogCreate
    ) -> ExecutionLogRead:
        async for session in self._session_factory():
            model = AgentExecutionLogModel(
                organization_id=uuid.UUID(organization_id),
                **data.model_dump(mode="json"),
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_log(model)

    async def record_action(
        self, organization_id: str, data: AutonomousActionCreate
    ) -> AutonomousActionRead:
        async for session in self._session_factory():
            model = AutonomousActionModel(
                organization_id=uuid.UUID(organization_id),
                **data.model_dump(exclude={"executed_at"}, mode="json"),
                executed_at=data.executed_at,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_action(model)

    async def list_executions(
        self, organization_id: str, limit: int = 50
    ) -> list[ExecutionLogRead]:
        async for session in self._session_factory():
            stmt = (
                select(AgentExecutionLogModel)
                .where(AgentExecutionLogModel.organization_id == uuid.UUID(organization_id))
                .order_by(AgentExecutionLogModel.executed_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_log(m) for m in result.scalars().all()]

    async def list_actions(
        self, organization_id: str, agent_type: str | None = None, limit: int = 50
    ) -> list[AutonomousActionRead]:
        async for session in self._session_factory():
            stmt = select(AutonomousActionModel).where(
                AutonomousActionModel.organization_id == uuid.UUID(organization_id)
            )
            if agent_type:
                stmt = stmt.where(AutonomousActionModel.agent_type == agent_type)
            stmt = stmt.order_by(AutonomousActionModel.created_at.desc()).limit(limit)
            result = await session.execute(stmt)
            return [_model_to_action(m) for m in result.scalars().all()]
