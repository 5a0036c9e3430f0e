"""Wholesale price estimation from a product name."""

import re
from typing import Any

from marketplace.assistants.llm import complete, extract_json
from marketplace.errors import ExternalServiceError

_NUMBER = re.compile(r"\d+(?:\.\d+)?")

PROMPT = """You are a B2B pricing analyst. Estimate current wholesale prices for the product below using only its name.

Product: {product_name}

Reply with JSON:
{{
  "minPrice": number,
  "maxPrice": number,
  "recommendedBudget": number,
  "explanation": "short text",
  "confidence": "high|medium|low"
}}"""


def parse_numbers_in_text(text: str) -> dict[str, Any] | None:
    """Fallback parse: the first two numbers are the min and max price."""
    numbers = _NUMBER.findall(text or "")
    if len(numbers) < 2:
        return None
    return {
        "minPrice": float(numbers[0]),
        "maxPrice": float(numbers[1]),
        "recommendedBudget": float(numbers[1]),
        "explanation": text,
        "confidence": "medium",
    }


async def research_price(product_name: str) -> dict[str, Any]:
    """Estimate a price range for ``product_name``.

    Raises:
        ExternalServiceError: Provider failed, or the reply held no usable numbers
    """
    response = await complete(
        PROMPT.format(product_name=product_name),
        temperature=0.3,
        max_tokens=400,
        task="price_research",
    )

    data = extract_json(response) or parse_numbers_in_text(response)
    if data is None:
        raise ExternalServiceError("Could not parse price research results")
    return data
