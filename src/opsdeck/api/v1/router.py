"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.opsdeck.api.v1 import (
    approvals,
    auth,
    capital,
    governance,
    health,
    llm,
    organizations,
    outreach,
    pricing,
)

router = APIRouter()

router.include_router(health.router)
router.include_router(organizations.router)
router.include_router(auth.router)
router.include_router(llm.router)
router.include_router(governance.router)
router.include_router(approvals.router)
router.include_router(pricing.router)
router.include_router(outreach.router)
router.include_router(capital.router)
