"""Counter-proposal suggestions for either side of a negotiation."""

from typing import Any, Optional

from marketplace.assistants.llm import complete, extract_json
from marketplace.errors import ExternalServiceError

BUYER_RATIO = 0.9
SELLER_RATIO = 1.05
HISTORY_WINDOW = 3

PROMPT = """Suggest a negotiation reply for the {side}.
Offer price: {price}
Budget: {budget}
Recent messages:
{history}
User: {user_message}

Reply with JSON:
{{
  "message": "short professional reply (max 50 words)",
  "proposedPrice": {target},
  "strategy": "why this price"
}}"""


def target_price(current_price: float, user_type: str) -> int:
    """Buyers aim 10% below the offer, sellers hold 5% above it."""
    ratio = BUYER_RATIO if user_type == "buyer" else SELLER_RATIO
    return round(current_price * ratio)


def fallback_suggestion(current_price: float, user_type: str) -> dict[str, Any]:
    target = target_price(current_price, user_type)
    if user_type == "buyer":
        message = f"Thank you for your offer. Could we agree on {target}?"
    else:
        message = f"Thank you for your understanding. {target} is our best offer."
    return {
        "message": message,
        "proposedPrice": target,
        "strategy": "Meet in the middle",
    }


def format_history(history: Optional[list[dict[str, Any]]]) -> str:
    if not history:
        return "New negotiation"
    lines = []
    for entry in history[-HISTORY_WINDOW:]:
        line = f"{entry.get('sender', 'unknown')}: {entry.get('message', '')}"
        if entry.get("proposedPrice"):
            line += f" ({entry['proposedPrice']})"
        lines.append(line)
    return "\n".join(lines)


async def suggest_counter(
    offer: dict[str, Any],
    user_type: str,
    negotiation_history: Optional[list[dict[str, Any]]] = None,
    user_message: Optional[str] = None,
) -> tuple[dict[str, Any], bool]:
    """Suggest the next negotiation message.

    Returns:
        (suggestion, whether the heuristic fallback was used)
    """
    current_price = float(offer.get("price") or 0)
    product_request = offer.get("productRequest") or {}
    budget = product_request.get("maxBudget") or current_price * 1.2

    prompt = PROMPT.format(
        side=user_type,
        price=current_price,
        budget=budget,
        history=format_history(negotiation_history),
        user_message=user_message or "Suggest a reply",
        target=target_price(current_price, user_type),
    )

    try:
        response = await complete(prompt, temperature=0.5, max_tokens=300, task="negotiation")
    except ExternalServiceError:
        return fallback_suggestion(current_price, user_type), True

    data = extract_json(response)
    if not data or not str(data.get("message") or "").strip():
        return fallback_suggestion(current_price, user_type), True
    return data, False
