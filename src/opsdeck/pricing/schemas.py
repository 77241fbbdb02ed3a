"""Pricing schemas -- products, competitor scans, alerts, and enforcer runs."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class PriceAction(str, Enum):
    MATCH_PRICE = "match_price"
    HOLD_PRICE = "hold_price"
    OPPORTUNITY = "opportunity"
    NO_ACTION = "no_action"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


# ── Products ────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=300)
    my_price: float = Field(..., ge=0)
    my_cogs: float | None = Field(default=None, ge=0)
    min_margin_percent: float | None = Field(default=None, ge=0)
    competitor_url: str | None = None
    competitor_selector: str | None = None


class ProductRead(BaseModel):
    id: str
    organization_id: str
    product_name: str
    my_price: float
    my_cogs: float | None = None
    min_margin_percent: float
    competitor_url: str | None = None
    competitor_selector: str | None = None
    competitor_price: float | None = None
    price_action_taken: PriceAction | None = None
    last_checked: datetime | None = None
    created_at: datetime | None = None


class PriceHistoryEntry(BaseModel):
    product_name: str
    my_price: float
    competitor_price: float | None = None
    last_checked: datetime | None = None


# ── Decisions and alerts ────────────────────────────────────────────────────


class CompetitorAlert(BaseModel):
    alert_type: Literal["price_drop", "price_increase"]
    severity: str = "high"
    message: str
    recommendation: str = ""


class CompetitorAlertRead(CompetitorAlert):
    id: str
    organization_id: str
    product_id: str | None = None
    created_at: datetime | None = None


class PriceDecision(BaseModel):
    """Outcome of comparing one competitor price against our own."""

    action: PriceAction
    recommendation: str = ""
    min_safe_price: float
    alert: CompetitorAlert | None = None


class ScanResult(BaseModel):
    success: bool = True
    product_id: str
    product_name: str
    my_price: float
    competitor_price: float | None = None
    previous_competitor_price: float | None = None
    min_safe_price: float
    action: PriceAction
    recommendation: str = ""


# ── Enforcer ────────────────────────────────────────────────────────────────


class RevenueEvent(BaseModel):
    id: str
    amount: float
    created_at: datetime | None = None


class LeadSignal(BaseModel):
    id: str | None = None
    intent_score: float | None = None


class DiscountViolation(BaseModel):
    type: Literal["discount_violation"] = "discount_violation"
    event_id: str
    discount_given: float
    max_allowed: float
    revenue_lost: float


class UnderpricingFinding(BaseModel):
    type: Literal["consistent_underpricing"] = "consistent_underpricing"
    avg_transaction: float
    base_price: float
    gap_percent: float
    action: str = "Review sales team discounting practices"


class PriceIncreaseRecommendation(BaseModel):
    recommend_increase: bool = False
    suggested_increase_percent: float = 0
    confidence: Literal["HIGH", "MEDIUM", "LOW"] = "LOW"
    reasoning: str = ""
    risk_factors: list[str] = Field(default_factory=list)

    @field_validator("suggested_increase_percent")
    @classmethod
    def _clamp_increase(cls, v: float) -> float:
        return min(max(v, 0.0), 20.0)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, v):
        return str(v).upper() if v else "LOW"


class EnforcerRequest(BaseModel):
    base_price: float = Field(default=0, ge=0)
    risk_tolerance: RiskTolerance = RiskTolerance.BALANCED
    revenue_events: list[RevenueEvent] = Field(default_factory=list)
    leads: list[LeadSignal] = Field(default_factory=list)


class EnforcerResult(BaseModel):
    success: bool = True
    violations_found: int = 0
    opportunities_found: int = 0
    actions: list[DiscountViolation] = Field(default_factory=list)
    recommendations: list[dict[str, Any]] = Field(default_factory=list)
    approval_request_id: str | None = None
