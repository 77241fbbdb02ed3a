"""Governance background task tests.

The sweep task is called directly; the loop runner is only checked for
creating and storing its asyncio tasks.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.opsdeck.core.organization import OrganizationContext, get_current_organization
from src.opsdeck.governance.scheduler import setup_governance_scheduler, start_governance_scheduler
from src.opsdeck.governance.schemas import SweepResult

ORGS = [
    OrganizationContext(organization_id="org-1", slug="one", schema_name="org_one"),
    OrganizationContext(organization_id="org-2", slug="two", schema_name="org_two"),
]


def test_setup_returns_sweep_task():
    tasks = setup_governance_scheduler(AsyncMock(), AsyncMock(return_value=[]))
    assert list(tasks) == ["sweep_approvals"]


async def test_sweep_runs_each_organization_in_its_context():
    seen_contexts = []

    async def sweep(organization_id):
        seen_contexts.append((organization_id, get_current_organization().slug))
        return SweepResult(expired=1, escalated=2)

    service = SimpleNamespace(sweep=sweep)
    tasks = setup_governance_scheduler(service, AsyncMock(return_value=ORGS))

    totals = await tasks["sweep_approvals"]()

    assert totals == {"organizations": 2, "expired": 2, "escalated": 4}
    assert seen_contexts == [("org-1", "one"), ("org-2", "two")]
    with pytest.raises(RuntimeError):
        get_current_organization()


async def test_one_failing_organization_does_not_stop_the_rest():
    async def sweep(organization_id):
        if organization_id == "org-1":
            raise ConnectionError("schema missing")
        return SweepResult(expired=3)

    tasks = setup_governance_scheduler(SimpleNamespace(sweep=sweep), AsyncMock(return_value=ORGS))

    totals = await tasks["sweep_approvals"]()

    assert totals == {"organizations": 1, "expired": 3, "escalated": 0}


async def test_organization_listing_failure_is_contained():
    lister = AsyncMock(side_effect=ConnectionError("db down"))
    service = SimpleNamespace(sweep=AsyncMock())
    tasks = setup_governance_scheduler(service, lister)

    totals = await tasks["sweep_approvals"]()

    assert totals == {"organizations": 0, "expired": 0, "escalated": 0}
    service.sweep.assert_not_called()


async def test_start_scheduler_stores_and_cancels_tasks():
    state = SimpleNamespace()
    fn = AsyncMock()

    await start_governance_scheduler({"sweep_approvals": fn}, state, interval_seconds=3600)

    assert len(state.governance_scheduler_tasks) == 1
    task = state.governance_scheduler_tasks[0]
    assert task.get_name() == "governance_scheduler_sweep_approvals"

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    assert task.done()
    fn.assert_not_called()
