"""Capital advisor schemas -- company profile, pitch, and deal structures."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class FundingStage(str, Enum):
    PRE_SEED = "pre-seed"
    SEED = "seed"
    SERIES_A = "series-a"
    SERIES_B = "series-b"
    SERIES_C = "series-c"
    GROWTH = "growth"
    PRE_IPO = "pre-ipo"


class DealType(str, Enum):
    EQUITY = "equity"
    CONVERTIBLE = "convertible"
    SAFE = "safe"
    DEBT = "debt"
    REVENUE_SHARE = "revenue-share"
    HYBRID = "hybrid"


class BusinessMetrics(BaseModel):
    revenue: float = 0
    growth: float = Field(default=0, description="Growth rate as a fraction, e.g. 0.2 for 20%")
    gross_margin: float = Field(default=0, description="Gross margin as a fraction")
    customers: int = 0
    churn: float = 0
    cac: float = 0
    ltv: float = 0
    mrr: float | None = None
    arr: float | None = None
    burn_rate: float | None = None
    runway: float | None = None


class CompanyProfile(BaseModel):
    name: str = Field(..., min_length=1)
    industry: str = ""
    stage: FundingStage
    team_size: int | None = None
    location: str | None = None
    metrics: BusinessMetrics = Field(default_factory=BusinessMetrics)
    product_description: str = ""
    competitive_advantage: str = ""


# ── Pitch ───────────────────────────────────────────────────────────────────


class PitchInput(BaseModel):
    problem: str = ""
    solution: str = ""
    traction: str = ""
    market: str = ""
    business_model: str = ""
    team: str = ""
    ask: str = ""
    competition: str | None = None
    vision: str | None = None


class PitchElement(BaseModel):
    section: str
    content: str
    score: int
    improvements: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)


class PitchNarrative(BaseModel):
    hook: str
    problem: str
    solution: str
    traction: str
    ask: str


class ObjectionHandler(BaseModel):
    objection: str
    response: str


class PitchOptimization(BaseModel):
    overall_score: int
    elements: list[PitchElement]
    narrative: PitchNarrative
    objection_handlers: list[ObjectionHandler]
    story_arc: str
    quick_fixes: list[str] = Field(default_factory=list)


class PitchRequest(BaseModel):
    profile: CompanyProfile
    pitch: PitchInput


# ── Deal structure ──────────────────────────────────────────────────────────


class TermSheet(BaseModel):
    deal_type: DealType
    amount: float = Field(..., ge=0)
    valuation: float | None = None
    discount: float | None = None
    cap: float | None = None
    interest_rate: float | None = None
    liquidation_preference: float | None = None
    participating_preferred: bool = False
    antidilution: Literal["full-ratchet", "weighted-average", "none"] | None = None
    board_seats: int | None = None
    pro_rata: bool | None = None
    drag_along: bool | None = None
    pay_to_play: bool | None = None


class DealStructure(BaseModel):
    type: DealType
    terms: dict[str, Any] = Field(default_factory=dict)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    negotiation_points: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    alternatives: list[DealStructure] = Field(default_factory=list)


class KeyTerm(BaseModel):
    term: str
    recommendation: str
    importance: Literal["must-have", "important", "nice-to-have"]


class DealRecommendation(BaseModel):
    recommended_structure: DealStructure
    reasoning: str
    key_terms: list[KeyTerm]
    walk_away_points: list[str]


class DealAnalysisRequest(BaseModel):
    profile: CompanyProfile
    term_sheet: TermSheet | None = None


class StructureComparison(BaseModel):
    comparison: dict[str, dict[str, str]]
    recommendation: str


class CompareStructuresRequest(BaseModel):
    structures: list[DealStructure] = Field(default_factory=list)
