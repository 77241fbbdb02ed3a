"""Deterministic pitch scoring and narrative scaffolding.

Each of the seven pitch sections starts at 70 and loses fixed points for
every missing signal (a number, an urgency word, a growth word, ...). The
section score is floored at 0 and the overall score is the rounded mean.
No LLM is involved; the same text always scores the same.

Exports:
    PitchOptimizer: section scoring plus narrative, objection handlers,
        story arc and quick fixes.
"""

from __future__ import annotations

import math
import re

from src.opsdeck.capital.schemas import (
    CompanyProfile,
    ObjectionHandler,
    PitchElement,
    PitchInput,
    PitchNarrative,
    PitchOptimization,
)

BASE_SECTION_SCORE = 70
REFINED_STATEMENT_LIMIT = 200

_PERCENT = re.compile(r"\d+%")
_TRACTION_NUMBER = re.compile(r"\$[\d,]+|\d+%|\d+x")
_ASK_AMOUNT = re.compile(r"\$[\d,]+[MK]?")


def _contains_any(text: str, *needles: str) -> bool:
    return any(n in text for n in needles)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _element(
    section: str, content: str, deductions: list[tuple[bool, int, str]], examples: list[str]
) -> PitchElement:
    score = BASE_SECTION_SCORE
    improvements = []
    for missing, points, advice in deductions:
        if missing:
            score -= points
            improvements.append(advice)
    return PitchElement(
        section=section,
        content=content,
        score=max(0, score),
        improvements=improvements,
        examples=examples,
    )


class PitchOptimizer:
    """Score a pitch section by section and build presentation aids."""

    # ── Sections ────────────────────────────────────────────────────────────

    @staticmethod
    def score_problem(problem: str) -> PitchElement:
        lower = problem.lower()
        return _element(
            "Problem",
            problem,
            [
                (len(problem) < 100, 15, "Expand with specific pain points and quantified impact"),
                (
                    "$" not in problem and not _PERCENT.search(problem),
                    10,
                    'Add quantified data: "Companies lose $X annually" or "Y% of teams struggle with..."',
                ),
                (not _contains_any(lower, "current", "today"), 5, "Emphasize why this problem is urgent NOW"),
            ],
            [
                '"Enterprise teams waste 12 hours per week on manual data reconciliation, costing the '
                'average company $340K annually in lost productivity."',
                '"78% of B2B buyers abandon purchases due to poor checkout experiences, representing $18B '
                'in lost revenue industry-wide."',
            ],
        )

    @staticmethod
    def score_solution(solution: str) -> PitchElement:
        lower = solution.lower()
        wordy = len(solution.split(" ")) > 50 and "→" not in solution and "1." not in solution
        return _element(
            "Solution",
            solution,
            [
                (len(solution) > 300, 10, "Simplify to one clear sentence, then supporting details"),
                (
                    not _contains_any(lower, "only", "first", "unique"),
                    15,
                    "Highlight what makes your approach uniquely effective",
                ),
                (wordy, 5, "Break into clear before/after or step-by-step format"),
            ],
            [
                "\"We're the only platform that combines X with Y, reducing Z by 80% in under 30 days.\"",
                '"Think [Known Company] but for [Your Market] - we deliver [Key Benefit] through [Unique Approach]."',
            ],
        )

    @staticmethod
    def score_traction(traction: str) -> PitchElement:
        lower = traction.lower()
        return _element(
            "Traction",
            traction,
            [
                (
                    not _TRACTION_NUMBER.search(traction),
                    20,
                    "Lead with specific metrics: revenue, growth rate, customer count",
                ),
                (not _contains_any(lower, "growth", "growing"), 10, "Emphasize trajectory, not just current state"),
                (
                    not _contains_any(lower, "customer", "user"),
                    5,
                    "Include customer validation and notable logos if applicable",
                ),
            ],
            [
                '"$1.2M ARR, growing 25% MoM, with 47 enterprise customers including [Notable Logo]."',
                '"From $0 to $500K ARR in 8 months with zero paid marketing - 100% organic and referral."',
            ],
        )

    @staticmethod
    def score_market(market: str) -> PitchElement:
        # TAM/total/billion are matched case-sensitively
        return _element(
            "Market",
            market,
            [
                (
                    not _contains_any(market, "TAM", "total", "billion"),
                    15,
                    "Include TAM/SAM/SOM with credible sources",
                ),
                (
                    not _contains_any(market.lower(), "grow", "trend"),
                    10,
                    "Show market growth trajectory and tailwinds",
                ),
            ],
            [
                '"The [market] is $45B today, growing 18% annually. Our beachhead of [segment] is $2B '
                'with clear expansion paths."',
            ],
        )

    @staticmethod
    def score_business_model(model: str) -> PitchElement:
        lower = model.lower()
        return _element(
            "Business Model",
            model,
            [
                (
                    not _contains_any(lower, "margin", "ltv", "cac"),
                    15,
                    "Include unit economics: LTV/CAC, gross margins, payback period",
                ),
                (
                    not _contains_any(lower, "subscription", "recurring", "contract"),
                    10,
                    "Clarify revenue model and predictability",
                ),
            ],
            [
                '"Annual SaaS subscriptions averaging $48K ACV with 85% gross margins. LTV/CAC of 5:1 '
                'with 8-month payback."',
            ],
        )

    @staticmethod
    def score_team(team: str) -> PitchElement:
        lower = team.lower()
        return _element(
            "Team",
            team,
            [
                (
                    not _contains_any(lower, "experience", "previously", "founded"),
                    15,
                    "Highlight relevant domain expertise and past successes",
                ),
                (
                    not _contains_any(lower, "why", "passion"),
                    10,
                    "Explain why THIS team is uniquely positioned to win",
                ),
            ],
            [
                '"Our founding team built and sold [Previous Company] to [Acquirer]. We\'ve spent 15 '
                'combined years in [Industry] and know this problem firsthand."',
            ],
        )

    @staticmethod
    def score_ask(ask: str) -> PitchElement:
        lower = ask.lower()
        return _element(
            "Ask",
            ask,
            [
                (not _ASK_AMOUNT.search(ask), 20, "State specific amount you're raising"),
                (
                    not _contains_any(lower, "use", "milestone"),
                    15,
                    'Connect raise to specific milestones: "This gets us to..."',
                ),
            ],
            [
                '"Raising $5M to reach $3M ARR in 18 months. Primary use: expanding sales team (60%) '
                'and product development (30%)."',
            ],
        )

    def score_sections(self, pitch: PitchInput) -> list[PitchElement]:
        return [
            self.score_problem(pitch.problem),
            self.score_solution(pitch.solution),
            self.score_traction(pitch.traction),
            self.score_market(pitch.market),
            self.score_business_model(pitch.business_model),
            self.score_team(pitch.team),
            self.score_ask(pitch.ask),
        ]

    # ── Narrative ───────────────────────────────────────────────────────────

    @staticmethod
    def refine_statement(content: str) -> str:
        if len(content) > REFINED_STATEMENT_LIMIT:
            return content[:REFINED_STATEMENT_LIMIT] + "..."
        return content

    def build_narrative(self, pitch: PitchInput) -> PitchNarrative:
        first_sentence = pitch.problem.split(".")[0].lower()
        return PitchNarrative(
            hook=f"\"What if {first_sentence}... didn't have to be that way?\"",
            problem=self.refine_statement(pitch.problem),
            solution=self.refine_statement(pitch.solution),
            traction=self.refine_statement(pitch.traction),
            ask=self.refine_statement(pitch.ask),
        )

    @staticmethod
    def objection_handlers(profile: CompanyProfile) -> list[ObjectionHandler]:
        advantage = profile.competitive_advantage or "[competitive advantage]"
        return [
            ObjectionHandler(
                objection="How do you compete with [incumbent]?",
                response=(
                    "Unlike incumbents who focus on [X], we're purpose-built for [Y]. "
                    f"Our {advantage} means we can deliver [specific benefit] that they can't match."
                ),
            ),
            ObjectionHandler(
                objection="Is this market big enough?",
                response=(
                    "Our initial beachhead is [specific segment], but we have clear expansion paths "
                    "to [adjacent markets] as we prove the model."
                ),
            ),
            ObjectionHandler(
                objection="What makes you the right team?",
                response=(
                    "We've spent [X years] in this industry and have direct experience with this problem. "
                    "Our unique insight is [specific insight] that led us to this approach."
                ),
            ),
            ObjectionHandler(
                objection="Why now?",
                response=(
                    "Three things have changed: [1] technology shift, [2] market behavior change, "
                    "[3] regulatory/macro shift. This creates a window that didn't exist before."
                ),
            ),
        ]

    @staticmethod
    def story_arc(profile: CompanyProfile) -> str:
        return f"""RECOMMENDED STORY ARC FOR {profile.name.upper()}:

1. HOOK (30 seconds)
   - Open with surprising stat or provocative question
   - Establish credibility immediately

2. PROBLEM (2 minutes)
   - Paint vivid picture of pain
   - Quantify the cost
   - Show why existing solutions fail

3. SOLUTION (3 minutes)
   - One-sentence positioning
   - Demo or visual walkthrough
   - Key differentiators

4. TRACTION (2 minutes)
   - Lead with strongest metric
   - Show trajectory, not just current state
   - Customer quote or logo slide

5. MARKET (1 minute)
   - TAM with credible source
   - Your wedge into the market
   - Expansion path

6. TEAM (1 minute)
   - Why you (unique insight)
   - Relevant experience
   - Key hires made/planned

7. ASK (30 seconds)
   - Specific amount
   - What it enables
   - Timeline to next milestone"""

    @staticmethod
    def overall_score(elements: list[PitchElement]) -> int:
        if not elements:
            return 0
        return _round_half_up(sum(e.score for e in elements) / len(elements))

    @staticmethod
    def quick_fixes(elements: list[PitchElement]) -> list[str]:
        """First improvement of each of the three lowest-scoring sections."""
        weakest = sorted(elements, key=lambda e: e.score)[:3]
        return [f"[{e.section}] {e.improvements[0]}" for e in weakest if e.improvements]

    def optimize(self, profile: CompanyProfile, pitch: PitchInput) -> PitchOptimization:
        elements = self.score_sections(pitch)
        return PitchOptimization(
            overall_score=self.overall_score(elements),
            elements=elements,
            narrative=self.build_narrative(pitch),
            objection_handlers=self.objection_handlers(profile),
            story_arc=self.story_arc(profile),
            quick_fixes=self.quick_fixes(elements),
        )
