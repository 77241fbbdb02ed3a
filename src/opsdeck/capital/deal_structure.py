"""Funding deal structure recommendations.

Early-stage companies get a capped SAFE. Later-stage companies either get
their term sheet evaluated against market-standard terms or a standard
priced-equity structure when no term sheet is on the table.
"""

from __future__ import annotations

import math

from src.opsdeck.capital.schemas import (
    CompanyProfile,
    DealRecommendation,
    DealStructure,
    DealType,
    FundingStage,
    KeyTerm,
    StructureComparison,
    TermSheet,
)

BASE_VALUATION_CAPS: dict[FundingStage, float] = {
    FundingStage.PRE_SEED: 5_000_000,
    FundingStage.SEED: 12_000_000,
    FundingStage.SERIES_A: 30_000_000,
    FundingStage.SERIES_B: 80_000_000,
    FundingStage.SERIES_C: 200_000_000,
    FundingStage.GROWTH: 500_000_000,
    FundingStage.PRE_IPO: 1_000_000_000,
}

SAFE_DISCOUNT = 0.20
_EARLY_STAGES = (FundingStage.PRE_SEED, FundingStage.SEED)
_WALK_AWAY_PREFIX = "WARNING: CURRENT TERM SHEET has walk-away terms"


def valuation_cap(profile: CompanyProfile) -> int:
    """Stage base cap adjusted for traction, rounded to the nearest million."""
    cap = BASE_VALUATION_CAPS[profile.stage]
    metrics = profile.metrics
    if metrics.revenue > 500_000:
        cap *= 1.3
    if metrics.growth > 0.20:
        cap *= 1.2
    if metrics.customers > 100:
        cap *= 1.1
    return int(math.floor(cap / 1_000_000 + 0.5)) * 1_000_000


def safe_structure(profile: CompanyProfile) -> DealStructure:
    return DealStructure(
        type=DealType.SAFE,
        terms={
            "cap": valuation_cap(profile),
            "discount": SAFE_DISCOUNT,
            "mfn": True,
            "pro_rata": True,
        },
        pros=[
            "Simple documentation - faster close",
            "No valuation negotiation at early stage",
            "Founder-friendly - no board seats or control provisions",
            "Standard terms well understood by investors",
        ],
        cons=[
            "Conversion math can be complex with multiple SAFEs",
            "Investors may want priced round at higher amounts",
            "Cap creates effective maximum valuation",
        ],
        negotiation_points=[
            "Cap should reflect 2-3x expected next round valuation",
            "Discount typically 15-25%",
            "Pro-rata rights matter for investor follow-on",
            "MFN clause protects against better terms to later investors",
        ],
        red_flags=[
            "Uncapped SAFEs can lead to excessive dilution",
            "Very low caps may signal desperation",
            "Complex additional terms beyond standard SAFE",
        ],
    )


def equity_structure(profile: CompanyProfile) -> DealStructure:
    return DealStructure(
        type=DealType.EQUITY,
        terms={
            "liquidation_preference": "1x non-participating",
            "antidilution": "weighted-average",
            "board_seats": 1 if profile.stage == FundingStage.SERIES_A else 2,
            "pro_rata": True,
            "drag_along": True,
            "pay_to_play": False,
        },
        pros=[
            "Clear valuation and ownership",
            "Standard structure understood by all parties",
            "Sets up clean cap table for future rounds",
        ],
        cons=[
            "Longer negotiation and documentation",
            "More expensive legal fees",
            "Investor typically gets board representation",
        ],
        negotiation_points=[
            "Valuation - anchor high, expect negotiation",
            "Liquidation preference - fight for 1x non-participating",
            "Board composition - maintain founder majority if possible",
            "Protective provisions - limit scope of investor vetoes",
        ],
        red_flags=[
            "Participating preferred (double-dip)",
            "Greater than 1x liquidation preference",
            "Full-ratchet anti-dilution",
            "Excessive protective provisions",
        ],
    )


def revenue_share_structure(amount: float) -> DealStructure:
    return DealStructure(
        type=DealType.REVENUE_SHARE,
        terms={
            "amount": amount,
            "repayment_cap": amount * 1.5,
            "percentage_of_revenue": 0.05,
        },
        pros=["No dilution", "Aligned incentives", "Faster process"],
        cons=["Cash flow impact", "Limited to companies with revenue", "Cap limits upside for lender"],
        negotiation_points=["Negotiate repayment cap", "Revenue percentage should match your margins"],
        red_flags=["Very high revenue percentages (>10%)", "No cap on repayment"],
    )


class DealStructureAdvisor:
    """Recommends and compares funding structures for a company profile."""

    def analyze(self, profile: CompanyProfile, term_sheet: TermSheet | None = None) -> DealRecommendation:
        structure = self.recommend_structure(profile, term_sheet)
        return DealRecommendation(
            recommended_structure=structure,
            reasoning=self.reasoning(profile, structure),
            key_terms=self.key_terms(profile, term_sheet),
            walk_away_points=self.walk_away_points(term_sheet),
        )

    def recommend_structure(
        self, profile: CompanyProfile, term_sheet: TermSheet | None = None
    ) -> DealStructure:
        if profile.stage in _EARLY_STAGES:
            return safe_structure(profile)
        if term_sheet is not None:
            return self.evaluate_term_sheet(profile, term_sheet)
        return equity_structure(profile)

    def evaluate_term_sheet(self, profile: CompanyProfile, term_sheet: TermSheet) -> DealStructure:
        issues: list[str] = []
        positives: list[str] = []
        preference = term_sheet.liquidation_preference

        if preference and preference > 1:
            issues.append(f"{preference:g}x liquidation preference is above market standard")
        else:
            positives.append("Standard 1x liquidation preference")

        if term_sheet.participating_preferred:
            issues.append(
                'Participating preferred creates "double-dip" - investors get preference AND participation'
            )
        else:
            positives.append("Non-participating preferred is founder-friendly")

        if term_sheet.antidilution == "full-ratchet":
            issues.append("Full-ratchet anti-dilution is very aggressive - push for weighted-average")
        elif term_sheet.antidilution == "weighted-average":
            positives.append("Weighted-average anti-dilution is market standard")

        return DealStructure(
            type=term_sheet.deal_type,
            terms=term_sheet.model_dump(mode="json", exclude_none=True),
            pros=positives,
            cons=issues,
            negotiation_points=self.negotiation_points(term_sheet, issues),
            red_flags=[i for i in issues if "aggressive" in i or "double-dip" in i],
            alternatives=self.alternatives(profile, term_sheet),
        )

    @staticmethod
    def negotiation_points(term_sheet: TermSheet, issues: list[str]) -> list[str]:
        points = []
        if issues:
            points.append("Address identified issues before signing - these are negotiable")
        if term_sheet.liquidation_preference and term_sheet.liquidation_preference > 1:
            points.append("Counter with 1x preference - offer other concessions if needed")
        if term_sheet.participating_preferred:
            points.append("Request cap on participation or convert to non-participating")
        points.append("Get legal counsel to review full documents")
        points.append("Compare against other term sheets if available")
        return points

    @staticmethod
    def alternatives(profile: CompanyProfile, term_sheet: TermSheet) -> list[DealStructure]:
        options = []
        if term_sheet.deal_type == DealType.EQUITY and term_sheet.participating_preferred:
            options.append(safe_structure(profile))
        if profile.metrics.revenue > 500_000 and profile.metrics.gross_margin > 0.50:
            options.append(revenue_share_structure(term_sheet.amount))
        return options

    @staticmethod
    def reasoning(profile: CompanyProfile, structure: DealStructure) -> str:
        stage = profile.stage.value
        reasons = []
        if structure.type == DealType.SAFE:
            reasons.append(f"At {stage} stage, SAFEs provide speed and simplicity.")
            reasons.append("Avoiding valuation negotiation now preserves optionality for growth.")
        elif structure.type == DealType.EQUITY:
            reasons.append(f"At {stage} stage, a priced round is expected and provides clarity.")
            reasons.append("Clear valuation helps with employee equity and future planning.")
        if profile.metrics.growth >= 0.15:
            reasons.append("Strong growth supports premium terms and valuation.")
        return " ".join(reasons)

    @staticmethod
    def key_terms(profile: CompanyProfile, term_sheet: TermSheet | None = None) -> list[KeyTerm]:
        proposed = (term_sheet.valuation or term_sheet.cap) if term_sheet else None
        is_seed = profile.stage == FundingStage.SEED
        return [
            KeyTerm(
                term="Valuation / Cap",
                recommendation=(
                    f"Proposed: ${proposed / 1_000_000:.1f}M - evaluate against comparables"
                    if proposed
                    else "Target 2-3x where you expect to be at next round"
                ),
                importance="must-have",
            ),
            KeyTerm(
                term="Liquidation Preference",
                recommendation="Insist on 1x non-participating. Never accept >1x or participating.",
                importance="must-have",
            ),
            KeyTerm(
                term="Anti-dilution",
                recommendation="Weighted-average is standard. Reject full-ratchet.",
                importance="important",
            ),
            KeyTerm(
                term="Board Seats",
                recommendation=(
                    "Avoid giving board seats at seed if possible"
                    if is_seed
                    else "Standard is one board seat per lead investor"
                ),
                importance="important" if is_seed else "nice-to-have",
            ),
            KeyTerm(
                term="Pro-rata Rights",
                recommendation="Standard for lead investors. Can limit to major investors only.",
                importance="nice-to-have",
            ),
            KeyTerm(
                term="Protective Provisions",
                recommendation="Review carefully - limit scope to major decisions only.",
                importance="important",
            ),
        ]

    @staticmethod
    def walk_away_points(term_sheet: TermSheet | None = None) -> list[str]:
        points = [
            "Participating preferred with >1x liquidation preference",
            "Full-ratchet anti-dilution",
            "Investor majority on board before Series B",
            "Excessive protective provisions that hamper operations",
            "Valuation so low it creates excessive dilution (>30% for seed, >25% for A)",
        ]
        if term_sheet is not None:
            if term_sheet.participating_preferred and (term_sheet.liquidation_preference or 1) > 1:
                points.insert(0, f"{_WALK_AWAY_PREFIX}: participating preferred + >1x preference")
            if term_sheet.antidilution == "full-ratchet":
                points.insert(0, f"{_WALK_AWAY_PREFIX}: full-ratchet anti-dilution")
        return points

    # ── Comparison ──────────────────────────────────────────────────────────

    @staticmethod
    def _dilution_impact(structure: DealStructure) -> str:
        if structure.type in (DealType.SAFE, DealType.CONVERTIBLE):
            return "Deferred until conversion"
        if structure.type == DealType.EQUITY:
            return "Immediate and known"
        if structure.type in (DealType.DEBT, DealType.REVENUE_SHARE):
            return "None (non-dilutive)"
        return "Varies"

    @staticmethod
    def _control_impact(structure: DealStructure) -> str:
        seats = structure.terms.get("board_seats")
        if structure.type == DealType.EQUITY and seats:
            return f"{seats} board seat(s)"
        if structure.type in (DealType.SAFE, DealType.CONVERTIBLE):
            return "Minimal until conversion"
        return "None"

    @staticmethod
    def _complexity(structure: DealStructure) -> str:
        return {
            DealType.SAFE: "Low - standard docs",
            DealType.CONVERTIBLE: "Medium",
            DealType.EQUITY: "High - full documentation",
        }.get(structure.type, "Medium")

    @staticmethod
    def _speed_to_close(structure: DealStructure) -> str:
        return {
            DealType.SAFE: "1-2 weeks",
            DealType.CONVERTIBLE: "2-4 weeks",
            DealType.EQUITY: "4-8 weeks",
        }.get(structure.type, "2-6 weeks")

    def compare_structures(self, structures: list[DealStructure]) -> StructureComparison:
        """Side-by-side impact table and a pick by fewest red flags."""
        comparison = {
            s.type.value: {
                "Dilution Impact": self._dilution_impact(s),
                "Control Impact": self._control_impact(s),
                "Complexity": self._complexity(s),
                "Speed to Close": self._speed_to_close(s),
            }
            for s in structures
        }

        if not structures:
            recommendation = "No structures to compare"
        elif len(structures) == 1:
            recommendation = f"Only one option: {structures[0].type.value}"
        else:
            ranked = sorted(structures, key=lambda s: len(s.red_flags))
            recommendation = (
                f"Recommend {ranked[0].type.value} - fewest concerns "
                f"({len(ranked[0].red_flags)} red flags vs {len(ranked[-1].red_flags)})"
            )
        return StructureComparison(comparison=comparison, recommendation=recommendation)
