"""Discount policy checks for the pricing enforcer."""

from __future__ import annotations

from collections.abc import Iterable

from src.opsdeck.pricing.schemas import (
    DiscountViolation,
    LeadSignal,
    RevenueEvent,
    RiskTolerance,
    UnderpricingFinding,
)

MAX_DISCOUNT_BY_TOLERANCE: dict[RiskTolerance, float] = {
    RiskTolerance.CONSERVATIVE: 5,
    RiskTolerance.BALANCED: 10,
    RiskTolerance.AGGRESSIVE: 15,
}

UNDERPRICING_RATIO = 0.85
HIGH_INTENT_SCORE = 75
MIN_HIGH_INTENT_LEADS = 5
MIN_CONVERSION_PERCENT = 30


def max_discount_percent(risk_tolerance: str | RiskTolerance | None) -> float:
    try:
        tolerance = RiskTolerance(risk_tolerance)
    except ValueError:
        tolerance = RiskTolerance.BALANCED
    return MAX_DISCOUNT_BY_TOLERANCE[tolerance]


def find_discount_violations(
    base_price: float,
    events: Iterable[RevenueEvent],
    max_pct: float,
) -> list[DiscountViolation]:
    if base_price <= 0:
        return []
    violations = []
    for event in events:
        discount = (base_price - event.amount) / base_price * 100
        if discount > max_pct:
            violations.append(
                DiscountViolation(
                    event_id=event.id,
                    discount_given=round(discount, 1),
                    max_allowed=max_pct,
                    revenue_lost=base_price - event.amount,
                )
            )
    return violations


def detect_underpricing(
    base_price: float, events: list[RevenueEvent]
) -> UnderpricingFinding | None:
    """Flag when the average transaction sits below 85% of list price."""
    if base_price <= 0 or not events:
        return None
    average = sum(e.amount for e in events) / (len(events) or 1)
    if average >= base_price * UNDERPRICING_RATIO:
        return None
    return UnderpricingFinding(
        avg_transaction=average,
        base_price=base_price,
        gap_percent=round((base_price - average) / base_price * 100, 1),
    )


def high_intent_leads(leads: Iterable[LeadSignal]) -> list[LeadSignal]:
    return [lead for lead in leads if (lead.intent_score or 0) > HIGH_INTENT_SCORE]


def conversion_rate(revenue_event_count: int, lead_count: int) -> float:
    """Revenue events per lead, as a percentage. Zero when there is no revenue."""
    if not revenue_event_count:
        return 0.0
    return revenue_event_count / (lead_count or 1) * 100


def is_price_increase_candidate(high_intent_count: int, conversion_percent: float) -> bool:
    return high_intent_count >= MIN_HIGH_INTENT_LEADS and conversion_percent > MIN_CONVERSION_PERCENT
