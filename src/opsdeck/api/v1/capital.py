"""Capital advisors -- pitch scoring and deal-structure analysis.

Both advisors are pure functions of the request body; nothing is stored.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.opsdeck.api.deps import require_permission
from src.opsdeck.capital.deal_structure import DealStructureAdvisor
from src.opsdeck.capital.pitch import PitchOptimizer
from src.opsdeck.capital.schemas import (
    CompareStructuresRequest,
    DealAnalysisRequest,
    DealRecommendation,
    PitchOptimization,
    PitchRequest,
    StructureComparison,
)
from src.opsdeck.models.organization import User

router = APIRouter(prefix="/api/v1/capital", tags=["capital"])

_pitch_optimizer = PitchOptimizer()
_deal_advisor = DealStructureAdvisor()


@router.post("/pitch", response_model=PitchOptimization)
async def optimize_pitch(
    body: PitchRequest,
    user: User = Depends(require_permission("score_pitch")),
):
    return _pitch_optimizer.optimize(body.profile, body.pitch)


@router.post("/deal-structure", response_model=DealRecommendation)
async def analyze_deal(
    body: DealAnalysisRequest,
    user: User = Depends(require_permission("score_pitch")),
):
    return _deal_advisor.analyze(body.profile, body.term_sheet)


@router.post("/compare", response_model=StructureComparison)
async def compare_structures(
    body: CompareStructuresRequest,
    user: User = Depends(require_permission("score_pitch")),
):
    return _deal_advisor.compare_structures(body.structures)
