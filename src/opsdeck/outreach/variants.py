"""Epsilon-greedy selection over outreach prompt variants.

Most of the time the variant with the best reply rate is used. With
probability epsilon one of the other variants is tried instead, so newer
variants get enough uses to be judged.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from src.opsdeck.outreach.schemas import PromptVariant

DEFAULT_EPSILON = 0.2


@dataclass(frozen=True)
class VariantChoice:
    variant: PromptVariant
    explored: bool


def success_rate(variant: PromptVariant) -> float:
    return variant.successes / variant.uses if variant.uses > 0 else 0.0


def select_variant(
    variants: list[PromptVariant],
    epsilon: float = DEFAULT_EPSILON,
    rng: random.Random | None = None,
) -> VariantChoice | None:
    """Pick a variant; None when there are none to pick from."""
    if not variants:
        return None
    rng = rng or random.Random()
    ranked = sorted(variants, key=success_rate, reverse=True)

    if len(ranked) > 1 and rng.random() < epsilon:
        return VariantChoice(variant=rng.choice(ranked[1:]), explored=True)
    return VariantChoice(variant=ranked[0], explored=False)
