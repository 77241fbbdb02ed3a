"""Competitor price decisions.

Given our price, cost and margin floor, decide how to respond to a
competitor's price: match it when the margin floor survives, hold when it
does not, flag an opportunity when they are more expensive.
"""

from __future__ import annotations

import re

from src.opsdeck.config import get_settings
from src.opsdeck.pricing.schemas import CompetitorAlert, PriceAction, PriceDecision

ALERT_CHANGE_RATIO = 0.1

_PRICE_PATTERN = re.compile(r"\d[\d,]*(?:\.\d+)?")


def min_safe_price(cogs: float | None, min_margin_percent: float | None = None) -> float:
    """Lowest price that keeps ``min_margin_percent`` over cost.

    Falls back to the configured DEFAULT_MIN_MARGIN_PERCENT when no floor is set.
    """
    margin = min_margin_percent if min_margin_percent else get_settings().DEFAULT_MIN_MARGIN_PERCENT
    return (cogs or 0) * (1 + margin / 100)


def parse_price(text: str | None) -> float | None:
    """First number in ``text`` with thousands separators removed.

    >>> parse_price("$1,299.00 per seat")
    1299.0
    """
    if not text:
        return None
    match = _PRICE_PATTERN.search(text)
    if match is None:
        return None
    return float(match.group(0).replace(",", ""))


def evaluate_competitor_price(
    my_price: float,
    my_cogs: float | None,
    min_margin_percent: float | None,
    competitor_price: float | None,
    previous_competitor_price: float | None = None,
    product_name: str = "",
) -> PriceDecision:
    floor = min_safe_price(my_cogs, min_margin_percent)
    cogs = my_cogs or 0

    if competitor_price is None:
        return PriceDecision(action=PriceAction.NO_ACTION, min_safe_price=floor)

    if competitor_price < my_price:
        if competitor_price >= floor:
            margin = (competitor_price - cogs) / competitor_price * 100 if competitor_price else 0.0
            action = PriceAction.MATCH_PRICE
            recommendation = (
                f"Drop price to ${competitor_price:.2f} to match competitor. "
                f"Margin still safe at {margin:.1f}%."
            )
        else:
            action = PriceAction.HOLD_PRICE
            recommendation = (
                f"Competitor at ${competitor_price:.2f} is below your safe margin of "
                f"${floor:.2f}. Hold your price - they may be selling at a loss."
            )
    elif competitor_price > my_price:
        action = PriceAction.OPPORTUNITY
        recommendation = (
            f"You're ${competitor_price - my_price:.2f} cheaper than competitor. "
            "Consider raising prices or emphasizing value."
        )
    else:
        action = PriceAction.NO_ACTION
        recommendation = ""

    alert = None
    if previous_competitor_price and (
        abs(competitor_price - previous_competitor_price)
        > previous_competitor_price * ALERT_CHANGE_RATIO
    ):
        alert = CompetitorAlert(
            alert_type="price_drop" if competitor_price < previous_competitor_price else "price_increase",
            severity="high",
            message=(
                f"{product_name}: Competitor price changed from "
                f"${previous_competitor_price} to ${competitor_price}"
            ),
            recommendation=recommendation,
        )

    return PriceDecision(
        action=action,
        recommendation=recommendation,
        min_safe_price=floor,
        alert=alert,
    )
