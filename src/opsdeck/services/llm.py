"""LLM gateway over a LiteLLM Router.

Two model groups are configured from whichever provider keys are present:
"reasoning" for drafting and analysis, "fast" for extraction tasks. Anthropic
models are listed first, OpenAI models back them up. Every call:
- strips prompt-injection phrases from non-system messages,
- carries organization metadata for cost attribution,
- is counted in the Prometheus LLM metrics.
"""

from __future__ import annotations

import json
import re

import structlog
from litellm import Router

from src.opsdeck.config import get_settings
from src.opsdeck.core.monitoring import track_llm_call
from src.opsdeck.core.organization import get_current_organization

logger = structlog.get_logger(__name__)

# ── Prompt Injection ──────────────────────────────────────────────────────────

INJECTION_PATTERNS: dict[str, re.Pattern] = {
    "instruction_override": re.compile(
        r"(ignore|disregard|forget|override)\s+(all\s+)?(previous\s+|your\s+)?instructions",
        re.IGNORECASE,
    ),
    "system_prompt_exfiltration": re.compile(
        r"(reveal|show|print|repeat)\s+(your\s+)?(system\s+prompt|instructions)|"
        r"repeat\s+everything\s+above|"
        r"what\s+are\s+your\s+instructions",
        re.IGNORECASE,
    ),
    "role_hijacking": re.compile(
        r"you\s+are\s+now\s+|"
        r"pretend\s+(to\s+be|you\s+are)|"
        r"from\s+now\s+on\s+you\s+are|"
        r"assume\s+the\s+role\s+of",
        re.IGNORECASE,
    ),
    "control_characters": re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]{3,}"),
}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def detect_prompt_injection(text: str) -> str | None:
    """Name of the first injection pattern found in ``text``, or None."""
    for name, pattern in INJECTION_PATTERNS.items():
        if pattern.search(text):
            logger.warning("llm.prompt_injection_detected", pattern=name, text_preview=text[:100])
            return name
    return None


def sanitize_messages(messages: list[dict]) -> list[dict]:
    """Return a copy of ``messages`` with injection phrases replaced.

    System messages are passed through untouched.
    """
    sanitized = []
    for msg in messages:
        content = msg.get("content") or ""
        if msg.get("role") == "system" or not content:
            sanitized.append(msg)
            continue

        if detect_prompt_injection(content) is None:
            sanitized.append(msg)
            continue

        cleaned = content
        for pattern in INJECTION_PATTERNS.values():
            cleaned = pattern.sub("[removed]", cleaned)
        sanitized.append({**msg, "content": cleaned})
    return sanitized


def parse_json_object(content: str | None) -> dict:
    """Parse a model reply as a JSON object; ``{}`` if it is not one."""
    if not content:
        return {}
    try:
        parsed = json.loads(_CODE_FENCE.sub("", content.strip()))
    except json.JSONDecodeError:
        logger.warning("llm.json_parse_failed", content_preview=content[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _organization_metadata() -> dict:
    try:
        org = get_current_organization()
    except RuntimeError:
        return {}
    return {"organization_id": org.organization_id, "organization_slug": org.slug}


# ── LLM Service ───────────────────────────────────────────────────────────────


class LLMService:
    """Completion calls routed through LiteLLM with provider fallback."""

    def __init__(self) -> None:
        settings = get_settings()
        model_list = []

        if settings.ANTHROPIC_API_KEY:
            model_list += [
                {
                    "model_name": "reasoning",
                    "litellm_params": {
                        "model": "anthropic/claude-sonnet-4-20250514",
                        "api_key": settings.ANTHROPIC_API_KEY,
                    },
                },
                {
                    "model_name": "fast",
                    "litellm_params": {
                        "model": "anthropic/claude-3-5-haiku-20241022",
                        "api_key": settings.ANTHROPIC_API_KEY,
                    },
                },
            ]

        if settings.OPENAI_API_KEY:
            model_list += [
                {
                    "model_name": "reasoning",
                    "litellm_params": {"model": "openai/gpt-4o", "api_key": settings.OPENAI_API_KEY},
                },
                {
                    "model_name": "fast",
                    "litellm_params": {"model": "openai/gpt-4o-mini", "api_key": settings.OPENAI_API_KEY},
                },
            ]

        if not model_list:
            logger.warning("llm.no_api_keys_configured")
            self.router = None
            return

        self.router = Router(
            model_list=model_list,
            num_retries=settings.LLM_MAX_RETRIES,
            timeout=settings.LLM_TIMEOUT,
            allowed_fails=3,
            cooldown_time=30,
        )

    async def completion(
        self,
        messages: list[dict],
        model: str = "reasoning",
        max_tokens: int = 4096,
        temperature: float = 0.7,
        metadata: dict | None = None,
        response_format: dict | None = None,
    ) -> dict:
        """Run one completion.

        Returns:
            Dict with content, model, usage and organization_id.

        Raises:
            RuntimeError: If no LLM API keys are configured.
        """
        if not self.router:
            raise RuntimeError("No LLM API keys configured")

        org_metadata = _organization_metadata()
        organization_id = org_metadata.get("organization_id", "unknown")
        kwargs: dict = {}
        if response_format is not None:
            kwargs["response_format"] = response_format

        async with track_llm_call(model, organization_id) as tracker:
            response = await self.router.acompletion(
                model=model,
                messages=sanitize_messages(messages),
                max_tokens=max_tokens,
                temperature=temperature,
                metadata={**org_metadata, **(metadata or {})},
                **kwargs,
            )
            usage = {}
            if getattr(response, "usage", None):
                usage = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }
                tracker["prompt_tokens"] = usage["prompt_tokens"]
                tracker["completion_tokens"] = usage["completion_tokens"]

        return {
            "content": response.choices[0].message.content or "",
            "model": response.model,
            "usage": usage,
            "organization_id": org_metadata.get("organization_id", ""),
        }

    async def json_completion(
        self,
        messages: list[dict],
        model: str = "reasoning",
        max_tokens: int = 2048,
        temperature: float = 0.3,
        metadata: dict | None = None,
    ) -> dict:
        """Ask for a JSON object reply and parse it. Unparseable output gives ``{}``."""
        result = await self.completion(
            messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            metadata=metadata,
            response_format={"type": "json_object"},
        )
        return parse_json_object(result["content"])


_llm_service: LLMService | None = None


def get_llm_service() -> LLMService:
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
