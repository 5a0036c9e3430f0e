"""Draft a seller's offer for a product request."""

import statistics
from typing import Any, Optional

import structlog

from marketplace.assistants.llm import complete, extract_json
from marketplace.errors import ExternalServiceError

logger = structlog.get_logger()

DEFAULT_DELIVERY_DAYS = 7
BUDGET_RATIO = 0.85
MIN_DELIVERY_DAYS = 1
MAX_DELIVERY_DAYS = 90

PROMPT = """Draft a B2B offer.
Product: {product_name}
Quantity: {quantity}
Budget: {budget}
Delivery city: {city}
{competition}
Reply with JSON:
{{
  "price": {suggested_price},
  "deliveryTime": 7-14,
  "message": "short professional message (max 100 words)",
  "confidence": "high|medium|low",
  "reasoning": "one sentence"
}}"""


def fallback_price(max_budget: Optional[float], competing_prices: list[float]) -> Optional[float]:
    """Median of competing offers, else 85% of the budget, else None."""
    prices = [p for p in competing_prices if p and p > 0]
    if prices:
        return float(statistics.median(prices))
    if max_budget and max_budget > 0:
        return max_budget * BUDGET_RATIO
    return None


def fallback_offer(product_request: dict[str, Any], competing_prices: list[float]) -> dict[str, Any]:
    """Deterministic draft used when the provider fails.

    Raises:
        ExternalServiceError: There is no price basis at all
    """
    price = fallback_price(product_request.get("maxBudget"), competing_prices)
    if price is None:
        raise ExternalServiceError()

    quantity = max(int(product_request.get("quantity") or 1), 1)
    price = round(price)
    product_name = product_request.get("productName", "the requested product")
    return {
        "price": price,
        "unitPrice": round(price / quantity),
        "deliveryTime": DEFAULT_DELIVERY_DAYS,
        "message": (
            f"Hello, we can supply {quantity} x {product_name} for {price} "
            f"with delivery in {DEFAULT_DELIVERY_DAYS} days. "
            "Happy to discuss the details."
        ),
        "confidence": "low",
        "reasoning": "Based on competing offers" if competing_prices else "Based on the buyer's budget",
    }


def sanitize_offer(data: dict[str, Any], quantity: int) -> Optional[dict[str, Any]]:
    """Normalize a model reply. Returns None if a required field is missing or unusable."""
    try:
        price = round(float(data["price"]))
        delivery = int(float(data["deliveryTime"]))
        message = str(data["message"]).strip()
    except (KeyError, TypeError, ValueError):
        return None
    if price <= 0 or not message:
        return None

    unit_price = data.get("unitPrice")
    try:
        unit_price = round(float(unit_price)) if unit_price else round(price / quantity)
    except (TypeError, ValueError):
        unit_price = round(price / quantity)

    return {
        "price": price,
        "unitPrice": unit_price,
        "deliveryTime": min(max(delivery, MIN_DELIVERY_DAYS), MAX_DELIVERY_DAYS),
        "message": message,
        "confidence": data.get("confidence") or "medium",
        "reasoning": data.get("reasoning") or "",
    }


async def draft_offer(
    product_request: dict[str, Any],
    competing_prices: Optional[list[float]] = None,
) -> tuple[dict[str, Any], bool]:
    """Suggest price, delivery time and message for an offer.

    Returns:
        (offer draft, whether the heuristic fallback was used)
    """
    competing_prices = competing_prices or []
    quantity = max(int(product_request.get("quantity") or 1), 1)
    budget = product_request.get("maxBudget")
    suggested = fallback_price(budget, competing_prices)

    competition = ""
    if competing_prices:
        competition = "Competing offers: " + ", ".join(str(p) for p in competing_prices[:10])

    prompt = PROMPT.format(
        product_name=product_request.get("productName", ""),
        quantity=quantity,
        budget=budget or "?",
        city=product_request.get("deliveryCity") or "?",
        competition=competition,
        suggested_price=round(suggested) if suggested else "?",
    )

    try:
        response = await complete(prompt, temperature=0.7, max_tokens=400, task="offer_drafting")
    except ExternalServiceError:
        return fallback_offer(product_request, competing_prices), True

    data = extract_json(response)
    offer = sanitize_offer(data, quantity) if data else None
    if offer is None:
        logger.warning("Unusable offer draft from AI, using fallback")
        return fallback_offer(product_request, competing_prices), True
    return offer, False
