"""Sniper outreach -- turn company news into personalized cold emails.

Signals come in through scan(), are drafted one at a time (or in small
batches) with a prompt chosen by epsilon-greedy over the organization's
active variants, and are closed out with record_outcome(), which credits the
variant when the prospect replied.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone

import structlog

from src.opsdeck.activity.repository import ActivityRepository
from src.opsdeck.activity.schemas import ExecutionLogCreate
from src.opsdeck.outreach.repository import OutreachRepository
from src.opsdeck.outreach.schemas import (
    DraftResult,
    OutreachDraft,
    OutreachStatus,
    PromptVariant,
    PromptVariantCreate,
    SignalInput,
    SignalRead,
)
from src.opsdeck.outreach.signals import detect_signal_type, extract_company_name
from src.opsdeck.outreach.variants import DEFAULT_EPSILON, select_variant

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 5

SNIPER_PROMPT = """You are an expert B2B sales copywriter specializing in hyper-personalized outreach.

Your job is to craft emails that feel like they were written by a friend who genuinely understands the recipient's situation.

SIGNAL TYPES:
- funding: Company just raised money. They're scaling and need solutions.
- hiring: Aggressive hiring. Growth pains and process gaps.
- product_launch: New product. Competitive pressure and marketing needs.
- leadership_change: New executive. Fresh perspective and appetite for change.

EMAIL STRUCTURE:
1. Hook: Reference the specific news (shows you did homework)
2. Insight: What typically happens next (shows expertise)
3. Social Proof: Similar company you helped (builds credibility)
4. Soft CTA: No hard sell, just a conversation starter

TONE: Peer-to-peer, not salesy. Like a colleague sharing helpful intel.

OUTPUT FORMAT (JSON):
{
  "subject_line": "Short, curiosity-driving subject",
  "email_body": "The personalized email",
  "follow_up_timing": "When to follow up if no response",
  "relevance_score": 0.0-1.0,
  "personalization_hooks": ["What makes this feel personal"]
}"""


class SignalNotFound(Exception):
    def __init__(self, signal_id: str) -> None:
        self.signal_id = signal_id
        super().__init__(f"Signal {signal_id} not found")


class NoPendingSignals(Exception):
    """Nothing is waiting to be drafted."""


class InvalidSignalState(Exception):
    """The signal is not in a state that allows the requested change."""


def build_signal_message(signal: SignalRead, business_context: str | None = None) -> str:
    lines = [
        "SIGNAL DETECTED:",
        f"Company: {signal.company_name}",
        f"Signal Type: {signal.signal_type.value}",
        f"Headline: {signal.headline}",
    ]
    if signal.summary:
        lines.append(f"Summary: {signal.summary}")
    if business_context:
        lines += ["", "MY BUSINESS:", business_context]
    lines += ["", "Draft a hyper-personalized outreach email that references this specific news."]
    return "\n".join(lines)


class SniperOutreachService:
    """Scan, draft, batch, and outcome operations for news-triggered outreach.

    Args:
        repository: OutreachRepository for signals and variants.
        activity: ActivityRepository for execution logs.
        llm_service: LLMService used for drafting.
        epsilon: Exploration probability for variant selection.
        batch_size: Maximum drafts per batch() call.
        rng: Random source for variant selection (seeded in tests).
    """

    def __init__(
        self,
        repository: OutreachRepository,
        activity: ActivityRepository,
        llm_service,
        epsilon: float = DEFAULT_EPSILON,
        batch_size: int = DEFAULT_BATCH_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        self._repo = repository
        self._activity = activity
        self._llm = llm_service
        self._epsilon = epsilon
        self._batch_size = batch_size
        self._rng = rng or random.Random()

    async def scan(self, organization_id: str, signals: list[SignalInput]) -> list[SignalRead]:
        """Store incoming signals as pending, filling in missing company and type."""
        resolved = []
        for s in signals:
            update = {}
            if not s.company_name:
                update["company_name"] = extract_company_name(s.source_url, s.headline)
            if not s.signal_type:
                update["signal_type"] = detect_signal_type(s.headline, s.summary)
            resolved.append(s.model_copy(update=update) if update else s)
        stored = await self._repo.store_signals(organization_id, resolved)
        logger.info("sniper_outreach.signals_stored", organization_id=organization_id, count=len(stored))
        return stored

    async def _next_signal(self, organization_id: str, signal_id: str | None) -> SignalRead:
        if signal_id:
            signal = await self._repo.get_signal(organization_id, signal_id)
            if signal is None:
                raise SignalNotFound(signal_id)
            return signal
        pending = await self._repo.list_pending_signals(organization_id, limit=1)
        if not pending:
            raise NoPendingSignals("No pending signals to draft")
        return pending[0]

    async def draft(
        self,
        organization_id: str,
        signal_id: str | None = None,
        business_context: str | None = None,
    ) -> DraftResult:
        """Draft an email for the given signal, or the most relevant pending one.

        Raises:
            SignalNotFound: ``signal_id`` does not exist.
            NoPendingSignals: No signal given and none pending.
            RuntimeError: No LLM service is available.
        """
        if self._llm is None:
            raise RuntimeError("LLM service not available")

        signal = await self._next_signal(organization_id, signal_id)

        choice = select_variant(
            await self._repo.list_active_variants(organization_id),
            epsilon=self._epsilon,
            rng=self._rng,
        )
        system_prompt = SNIPER_PROMPT
        if choice is not None:
            system_prompt = choice.variant.prompt_text
            await self._repo.increment_variant_uses(organization_id, choice.variant.id)

        raw = await self._llm.json_completion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": build_signal_message(signal, business_context)},
            ],
            model="reasoning",
            metadata={"agent_type": "sniper_outreach"},
        )
        draft = OutreachDraft.model_validate(raw)
        variant = choice.variant if choice else None

        await self._repo.save_draft(
            organization_id,
            signal.id,
            draft_email=draft.as_email(),
            relevance_score=draft.relevance_score,
            variant_id=variant.id if variant else None,
            processed_at=datetime.now(timezone.utc),
        )

        reasoning = f"Drafted outreach for {signal.company_name} ({signal.signal_type.value})"
        if variant:
            reasoning += f" using variant {variant.variant_tag}"
        await self._activity.log_execution(
            organization_id,
            ExecutionLogCreate(
                action_type="sniper_outreach",
                reasoning=reasoning,
                action_details={
                    "company": signal.company_name,
                    "signal_type": signal.signal_type.value,
                    "relevance_score": draft.relevance_score,
                    "variant_id": variant.id if variant else None,
                    "variant_tag": variant.variant_tag if variant else None,
                    "explored": choice.explored if choice else False,
                },
                result="drafted",
            ),
        )
        logger.info(
            "sniper_outreach.drafted",
            organization_id=organization_id,
            signal_id=signal.id,
            variant_tag=variant.variant_tag if variant else None,
        )

        return DraftResult(
            signal_id=signal.id,
            company_name=signal.company_name,
            variant_id=variant.id if variant else None,
            variant_tag=variant.variant_tag if variant else None,
            explored=choice.explored if choice else False,
            draft=draft,
        )

    async def batch(self, organization_id: str, business_context: str | None = None) -> list[dict]:
        """Draft up to batch_size pending signals in sequence."""
        results: list[dict] = []
        for signal in await self._repo.list_pending_signals(organization_id, limit=self._batch_size):
            try:
                result = await self.draft(organization_id, signal.id, business_context)
                results.append(result.model_dump(mode="json"))
            except Exception as e:
                logger.warning("sniper_outreach.batch_draft_failed", signal_id=signal.id, exc_info=True)
                results.append({"success": False, "signal_id": signal.id, "error": str(e)})
        return results

    async def record_outcome(self, organization_id: str, signal_id: str, replied: bool) -> SignalRead:
        """Close out a drafted signal, crediting its variant on a reply.

        Raises:
            SignalNotFound: Unknown signal.
            InvalidSignalState: The signal has not been drafted.
        """
        signal = await self._repo.get_signal(organization_id, signal_id)
        if signal is None:
            raise SignalNotFound(signal_id)
        if signal.outreach_status != OutreachStatus.DRAFTED:
            raise InvalidSignalState(
                f"Signal is {signal.outreach_status.value}, only drafted signals take an outcome"
            )

        status = OutreachStatus.REPLIED if replied else OutreachStatus.NO_REPLY
        updated = await self._repo.set_signal_status(organization_id, signal_id, status)
        if replied and signal.variant_id:
            await self._repo.increment_variant_successes(organization_id, signal.variant_id)
        logger.info(
            "sniper_outreach.outcome_recorded",
            organization_id=organization_id,
            signal_id=signal_id,
            status=status.value,
        )
        return updated

    async def add_variant(self, organization_id: str, data: PromptVariantCreate) -> PromptVariant:
        variant = await self._repo.create_variant(organization_id, data)
        logger.info(
            "sniper_outreach.variant_added",
            organization_id=organization_id,
            variant_tag=variant.variant_tag,
        )
        return variant

    async def list_variants(self, organization_id: str) -> list[PromptVariant]:
        return await self._repo.list_active_variants(organization_id)
