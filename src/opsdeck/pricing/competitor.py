"""Competitor page fetch and LLM price extraction."""

from __future__ import annotations

import httpx
import structlog

from src.opsdeck.config import get_settings
from src.opsdeck.pricing.margin import parse_price

logger = structlog.get_logger(__name__)

BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
HTML_CHAR_LIMIT = 8000


def build_extraction_prompt(product_name: str, html: str, selector: str | None = None) -> str:
    hint = f"CSS selector hint: {selector}\n" if selector else ""
    return (
        "Extract the main product price from this webpage HTML.\n\n"
        f"Product we're looking for: {product_name}\n"
        f"{hint}\n"
        f"HTML (first {HTML_CHAR_LIMIT} chars):\n"
        f"{html[:HTML_CHAR_LIMIT]}\n\n"
        "Return ONLY the numeric price (e.g., 199.99). If multiple prices, return "
        'the main/featured one. If no price found, return "null".'
    )


class CompetitorPriceFetcher:
    """Reads a competitor's current price off their product page.

    Args:
        llm_service: LLMService used for extraction.
        client: Optional shared httpx.AsyncClient (tests pass a mock transport).
    """

    def __init__(self, llm_service, client: httpx.AsyncClient | None = None) -> None:
        self._llm = llm_service
        self._client = client

    async def _fetch_html(self, url: str) -> str | None:
        settings = get_settings()
        headers = {"User-Agent": BROWSER_USER_AGENT}
        if self._client is not None:
            response = await self._client.get(url, headers=headers, timeout=settings.COMPETITOR_FETCH_TIMEOUT)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(url, headers=headers, timeout=settings.COMPETITOR_FETCH_TIMEOUT)
        if response.status_code >= 400:
            logger.warning("competitor.fetch_bad_status", url=url, status_code=response.status_code)
            return None
        return response.text

    async def fetch_price(
        self, url: str, product_name: str, selector: str | None = None
    ) -> float | None:
        """Competitor price, or None if the page or the extraction failed."""
        try:
            html = await self._fetch_html(url)
            if html is None:
                return None
            result = await self._llm.completion(
                messages=[{"role": "user", "content": build_extraction_prompt(product_name, html, selector)}],
                model="fast",
                max_tokens=50,
                temperature=0.1,
                metadata={"purpose": "competitor_price_extraction"},
            )
        except Exception as e:
            logger.warning("competitor.price_fetch_failed", url=url, error=str(e))
            return None

        price = parse_price(result.get("content"))
        logger.info("competitor.price_extracted", url=url, price=price)
        return price
