"""Rank a set of offers for a buyer. Results are cached per offer set."""

from typing import Any, Optional

import structlog

from marketplace.assistants.llm import complete, extract_json
from marketplace.cache import CacheManager
from marketplace.errors import ExternalServiceError, ValidationFailed
from marketplace.logging import log_ai_call

logger = structlog.get_logger()

MAX_OFFERS_IN_PROMPT = 10
TOP_PICKS = 3

PROMPT = """Request: {product_name} ({quantity} units, max budget {budget})
Offers:
{offers}

Reply with JSON (offer numbers are 0-based):
{{
  "topPicks": [0, 1, 2],
  "bestValue": 0,
  "fastestDelivery": 0,
  "analysis": "50 word summary",
  "recommendation": "which one and why"
}}"""


def comparison_key(offers: list[dict[str, Any]]) -> str:
    """Cache key from the sorted offer ids."""
    return "compare_" + "_".join(sorted(str(o.get("id")) for o in offers))


def fallback_comparison(offers: list[dict[str, Any]]) -> dict[str, Any]:
    """Cheapest and fastest picks by index. The first minimum wins ties."""
    prices = [float(o.get("price") or 0) for o in offers]
    deliveries = [float(o.get("deliveryTime") or 0) for o in offers]

    by_price = sorted(range(len(offers)), key=lambda i: prices[i])
    fastest = min(range(len(offers)), key=lambda i: deliveries[i])

    return {
        "topPicks": by_price[:TOP_PICKS],
        "bestValue": by_price[0],
        "fastestDelivery": fastest,
        "analysis": "Ranked by price and delivery time.",
        "recommendation": "Consider the lowest priced offer.",
    }


def _valid_index(value: Any, count: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < count


def sanitize_comparison(data: dict[str, Any], count: int) -> Optional[dict[str, Any]]:
    """Keep a model reply only if its indices point at real offers."""
    if not _valid_index(data.get("bestValue"), count):
        return None
    if not _valid_index(data.get("fastestDelivery"), count):
        return None
    picks = data.get("topPicks") or []
    if not isinstance(picks, list) or not all(_valid_index(p, count) for p in picks):
        return None
    return {
        "topPicks": picks[:TOP_PICKS],
        "bestValue": data["bestValue"],
        "fastestDelivery": data["fastestDelivery"],
        "analysis": str(data.get("analysis") or ""),
        "recommendation": str(data.get("recommendation") or ""),
    }


class OfferComparison:
    """Offer comparison backed by an injected cache."""

    def __init__(self, cache: CacheManager, ttl_seconds: Optional[int] = None):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def compare(
        self,
        offers: list[dict[str, Any]],
        product_request: dict[str, Any],
    ) -> tuple[dict[str, Any], bool, bool]:
        """Compare offers.

        Returns:
            (analysis, cached, fallback)
        """
        if not offers:
            raise ValidationFailed("No offers provided")

        key = comparison_key(offers)
        cached = await self.cache.get(key)
        if cached is not None:
            log_ai_call("offer_comparison", duration_ms=0.0, cached=True)
            return cached, True, False

        quantity = max(int(product_request.get("quantity") or 1), 1)
        lines = []
        for index, offer in enumerate(offers[:MAX_OFFERS_IN_PROMPT]):
            price = float(offer.get("price") or 0)
            lines.append(
                f"{index}. {price} ({round(price / quantity)}/unit) - {offer.get('deliveryTime')} days"
            )
        prompt = PROMPT.format(
            product_name=product_request.get("productName", ""),
            quantity=quantity,
            budget=product_request.get("maxBudget") or "?",
            offers="\n".join(lines),
        )

        analysis = None
        try:
            response = await complete(prompt, temperature=0.3, max_tokens=500, task="offer_comparison")
            data = extract_json(response)
            analysis = sanitize_comparison(data, len(offers)) if data else None
        except ExternalServiceError:
            logger.warning("Offer comparison falling back to heuristic ranking")

        fallback = analysis is None
        if fallback:
            analysis = fallback_comparison(offers)

        await self.cache.set(key, analysis, ttl_seconds=self.ttl_seconds, cache_type="comparison")
        return analysis, False, fallback
