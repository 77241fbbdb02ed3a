"""Price surgeon and pricing enforcer services.

PriceSurgeonService tracks our products against competitor pages and
decides match/hold/opportunity on each scan. PricingEnforcer audits recent
revenue against the discount policy and proposes price increases, which are
never applied directly: a positive recommendation files a ``raise_price``
approval request.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.opsdeck.activity.repository import ActivityRepository
from src.opsdeck.activity.schemas import AutonomousActionCreate, ExecutionLogCreate
from src.opsdeck.governance.approvals import ApprovalService
from src.opsdeck.pricing.competitor import CompetitorPriceFetcher
from src.opsdeck.pricing.discounts import (
    conversion_rate,
    detect_underpricing,
    find_discount_violations,
    high_intent_leads,
    is_price_increase_candidate,
    max_discount_percent,
)
from src.opsdeck.pricing.margin import evaluate_competitor_price
from src.opsdeck.pricing.repository import PricingRepository
from src.opsdeck.pricing.schemas import (
    CompetitorAlertRead,
    EnforcerRequest,
    EnforcerResult,
    PriceHistoryEntry,
    PriceIncreaseRecommendation,
    ProductCreate,
    ProductRead,
    ScanResult,
)

logger = structlog.get_logger(__name__)

RECENT_ALERT_LIMIT = 20
AGENT_TYPE = "pricing_enforcer"
_CONFIDENCE_SCORES = {"HIGH": 90, "MEDIUM": 70, "LOW": 50}


class ProductNotFound(Exception):
    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class MissingCompetitorUrl(Exception):
    """The product has no competitor page configured."""


class PriceSurgeonService:
    def __init__(self, repository: PricingRepository, fetcher: CompetitorPriceFetcher) -> None:
        self._repo = repository
        self._fetcher = fetcher

    async def add_product(self, organization_id: str, data: ProductCreate) -> ProductRead:
        product = await self._repo.create_product(organization_id, data)
        logger.info("price_surgeon.product_added", organization_id=organization_id, product_id=product.id)
        return product

    async def list_products(self, organization_id: str) -> list[ProductRead]:
        return await self._repo.list_products(organization_id)

    async def scan_product(self, organization_id: str, product_id: str) -> ScanResult:
        """Fetch the competitor price for one product and decide on a response.

        The product row and an alert are only written when a price was found.

        Raises:
            ProductNotFound: Unknown product id.
            MissingCompetitorUrl: Product has no competitor URL.
        """
        product = await self._repo.get_product(organization_id, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        if not product.competitor_url:
            raise MissingCompetitorUrl("No competitor URL configured")

        competitor_price = await self._fetcher.fetch_price(
            product.competitor_url, product.product_name, product.competitor_selector
        )
        decision = evaluate_competitor_price(
            my_price=product.my_price,
            my_cogs=product.my_cogs,
            min_margin_percent=product.min_margin_percent,
            competitor_price=competitor_price,
            previous_competitor_price=product.competitor_price,
            product_name=product.product_name,
        )

        if competitor_price is not None:
            if decision.alert is not None:
                await self._repo.create_alert(organization_id, product.id, decision.alert)
                logger.info(
                    "price_surgeon.alert_created",
                    product_id=product.id,
                    alert_type=decision.alert.alert_type,
                )
            await self._repo.record_scan(
                organization_id,
                product.id,
                competitor_price,
                decision.action,
                datetime.now(timezone.utc),
            )

        return ScanResult(
            product_id=product.id,
            product_name=product.product_name,
            my_price=product.my_price,
            competitor_price=competitor_price,
            previous_competitor_price=product.competitor_price,
            min_safe_price=decision.min_safe_price,
            action=decision.action,
            recommendation=decision.recommendation,
        )

    async def scan_all(self, organization_id: str) -> list[dict]:
        """Scan every product; a failed scan is reported in place, not raised."""
        results: list[dict] = []
        for product in await self._repo.list_products(organization_id):
            try:
                scan = await self.scan_product(organization_id, product.id)
                results.append(scan.model_dump(mode="json"))
            except MissingCompetitorUrl as e:
                results.append({"success": False, "product_id": product.id, "error": str(e)})
            except Exception:
                logger.warning("price_surgeon.scan_failed", product_id=product.id, exc_info=True)
                results.append({"product_id": product.id, "error": "Scan failed"})
        return results

    async def update_my_price(
        self, organization_id: str, product_id: str, new_price: float
    ) -> ProductRead:
        try:
            product = await self._repo.update_my_price(organization_id, product_id, new_price)
        except ValueError:
            raise ProductNotFound(product_id)
        logger.info(
            "price_surgeon.price_updated",
            organization_id=organization_id,
            product_id=product_id,
            new_price=new_price,
        )
        return product

    async def price_history(self, organization_id: str) -> list[PriceHistoryEntry]:
        # Current snapshot per product; no per-scan history is kept.
        return [
            PriceHistoryEntry(
                product_name=p.product_name,
                my_price=p.my_price,
                competitor_price=p.competitor_price,
                last_checked=p.last_checked,
            )
            for p in await self._repo.list_products(organization_id)
        ]

    async def recent_alerts(
        self, organization_id: str, limit: int = RECENT_ALERT_LIMIT
    ) -> list[CompetitorAlertRead]:
        """Competitor alerts raised by scans, newest first."""
        return await self._repo.list_alerts(organization_id, limit=limit)


def _recommendation_prompt(
    base_price: float, high_intent: int, conversion: float, lead_count: int, event_count: int
) -> str:
    return (
        "Analyze this pricing data and recommend if a price increase is warranted:\n\n"
        f"Current base price: ${base_price}\n"
        f"High-intent leads (last 7 days): {high_intent}\n"
        f"Conversion rate: {conversion:.1f}%\n"
        f"Total leads: {lead_count}\n"
        f"Revenue events: {event_count}\n\n"
        "Provide a JSON response with:\n"
        "{\n"
        '  "recommend_increase": boolean,\n'
        '  "suggested_increase_percent": number (0-20),\n'
        '  "confidence": "HIGH" | "MEDIUM" | "LOW",\n'
        '  "reasoning": "string",\n'
        '  "risk_factors": ["string"]\n'
        "}"
    )


class PricingEnforcer:
    """One enforcement pass over an organization's recent revenue and leads.

    Args:
        activity: ActivityRepository for action records and the run log.
        approvals: ApprovalService used to file raise_price requests.
        llm_service: LLMService, or None to skip the recommendation step.
    """

    def __init__(
        self,
        activity: ActivityRepository,
        approvals: ApprovalService,
        llm_service=None,
    ) -> None:
        self._activity = activity
        self._approvals = approvals
        self._llm = llm_service

    async def _recommend(self, request: EnforcerRequest, high_intent: int, conversion: float) -> PriceIncreaseRecommendation | None:
        if self._llm is None:
            return None
        try:
            raw = await self._llm.json_completion(
                messages=[
                    {
                        "role": "system",
                        "content": "You are a pricing optimization AI. Analyze data and provide recommendations.",
                    },
                    {
                        "role": "user",
                        "content": _recommendation_prompt(
                            request.base_price,
                            high_intent,
                            conversion,
                            len(request.leads),
                            len(request.revenue_events),
                        ),
                    },
                ],
                model="fast",
                metadata={"agent_type": AGENT_TYPE},
            )
            return PriceIncreaseRecommendation.model_validate(raw)
        except Exception:
            logger.warning("pricing_enforcer.recommendation_failed", exc_info=True)
            return None

    async def run(self, organization_id: str, request: EnforcerRequest) -> EnforcerResult:
        now = datetime.now(timezone.utc)
        max_pct = max_discount_percent(request.risk_tolerance)
        result = EnforcerResult()

        result.actions = find_discount_violations(request.base_price, request.revenue_events, max_pct)
        result.violations_found = len(result.actions)
        for violation in result.actions:
            await self._activity.record_action(
                organization_id,
                AutonomousActionCreate(
                    agent_type=AGENT_TYPE,
                    action_type="discount_violation",
                    target_entity_type="revenue_event",
                    target_entity_id=violation.event_id,
                    decision="violation_flagged",
                    reasoning=f"Discount of {violation.discount_given:.1f}% exceeds max {max_pct:g}%",
                    confidence_score=95,
                    value_impact=violation.revenue_lost,
                    was_auto_executed=True,
                    executed_at=now,
                ),
            )

        high_intent = len(high_intent_leads(request.leads))
        conversion = conversion_rate(len(request.revenue_events), len(request.leads))
        if is_price_increase_candidate(high_intent, conversion):
            recommendation = await self._recommend(request, high_intent, conversion)
            if recommendation is not None and recommendation.recommend_increase:
                result.opportunities_found += 1
                result.recommendations.append(recommendation.model_dump(mode="json"))
                value_impact = request.base_price * recommendation.suggested_increase_percent / 100

                await self._activity.record_action(
                    organization_id,
                    AutonomousActionCreate(
                        agent_type=AGENT_TYPE,
                        action_type="pricing_opportunity",
                        decision="recommend_increase",
                        reasoning=recommendation.reasoning,
                        confidence_score=_CONFIDENCE_SCORES[recommendation.confidence],
                        value_impact=value_impact,
                        requires_approval=True,
                        was_auto_executed=False,
                        execution_result=recommendation.model_dump(mode="json"),
                    ),
                )
                approval = await self._approvals.create_request(
                    organization_id,
                    action="raise_price",
                    requested_by=AGENT_TYPE,
                    title=f"Raise base price by {recommendation.suggested_increase_percent:g}%",
                    payload={
                        "base_price": request.base_price,
                        "suggested_increase_percent": recommendation.suggested_increase_percent,
                        "reasoning": recommendation.reasoning,
                    },
                    value_impact=value_impact,
                )
                result.approval_request_id = approval.id

        underpricing = detect_underpricing(request.base_price, request.revenue_events)
        if underpricing is not None:
            result.recommendations.append(underpricing.model_dump(mode="json"))

        await self._activity.log_execution(
            organization_id,
            ExecutionLogCreate(
                action_type="pricing_enforcement",
                reasoning=(
                    f"Found {result.violations_found} violations, "
                    f"{result.opportunities_found} opportunities"
                ),
                action_details=result.model_dump(mode="json"),
                result="completed",
            ),
        )
        logger.info(
            "pricing_enforcer.completed",
            organization_id=organization_id,
            violations=result.violations_found,
            opportunities=result.opportunities_found,
        )
        return result
