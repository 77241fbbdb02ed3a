"""Background approval sweep.

Approval requests do not carry their own timers. Instead a background loop
walks every active organization and calls ApprovalService.sweep() with that
organization's context set, so the repository's session lands in the right
schema under the right RLS setting.

Task functions are defined separately from the loop that runs them so tests
can call them directly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from src.opsdeck.core.organization import (
    OrganizationContext,
    reset_organization_context,
    set_organization_context,
)
from src.opsdeck.governance.approvals import ApprovalService

logger = structlog.get_logger(__name__)

OrganizationLister = Callable[[], Awaitable[list[OrganizationContext]]]


def setup_governance_scheduler(
    approval_service: ApprovalService,
    organization_lister: OrganizationLister,
) -> dict:
    """Build the governance background tasks.

    Args:
        approval_service: Service whose sweep() expires and escalates requests.
        organization_lister: Async callable returning the contexts of every
            active organization.

    Returns:
        Dict mapping task name to async callable.
    """

    async def sweep_approvals_task() -> dict[str, int]:
        """Sweep every organization; one organization failing does not stop the rest."""
        totals = {"organizations": 0, "expired": 0, "escalated": 0}
        try:
            organizations = await organization_lister()
        except Exception:
            logger.warning("scheduler.organization_list_failed", exc_info=True)
            return totals

        for ctx in organizations:
            token = set_organization_context(ctx)
            try:
                result = await approval_service.sweep(ctx.organization_id)
                totals["organizations"] += 1
                totals["expired"] += result.expired
                totals["escalated"] += result.escalated
            except Exception:
                logger.warning(
                    "scheduler.approval_sweep_failed",
                    organization_id=ctx.organization_id,
                    exc_info=True,
                )
            finally:
                reset_organization_context(token)

        logger.info("scheduler.approvals_swept", **totals)
        return totals

    return {"sweep_approvals": sweep_approvals_task}


async def start_governance_scheduler(tasks: dict, app_state, interval_seconds: float) -> None:
    """Run each task on a fixed interval as a background asyncio task.

    Task references are stored on ``app_state.governance_scheduler_tasks`` so
    shutdown can cancel them.
    """
    background_tasks: list[asyncio.Task] = []

    for task_name, task_fn in tasks.items():

        async def _loop(fn=task_fn, name=task_name, sleep=interval_seconds):
            while True:
                try:
                    await asyncio.sleep(sleep)
                    await fn()
                except asyncio.CancelledError:
                    logger.info("scheduler.task_cancelled", task=name)
                    break
                except Exception:
                    logger.warning("scheduler.task_loop_error", task=name, exc_info=True)

        background_tasks.append(
            asyncio.create_task(_loop(), name=f"governance_scheduler_{task_name}")
        )

    app_state.governance_scheduler_tasks = background_tasks
    logger.info(
        "scheduler.background_tasks_started",
        task_count=len(background_tasks),
        interval_seconds=interval_seconds,
    )
