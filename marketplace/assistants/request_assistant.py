"""Conversational assistant that helps a buyer fill in a product request.

The conversation runs through an openai-agents ``Agent``. Form field
suggestions are extracted from the whole conversation with plain regexes so
they work regardless of how the model phrases its reply.
"""

import asyncio
import json
import re
import time
from datetime import timedelta
from typing import Any, Optional

import openai
import structlog
from agents import Agent, AgentsException, RunConfig, Runner, set_default_openai_key

from marketplace.db.models import utcnow
from marketplace.errors import ExternalServiceError
from marketplace.logging import log_ai_call

logger = structlog.get_logger()

CATEGORIES = [
    "electronics",
    "clothing",
    "home-living",
    "sports-outdoor",
    "books-music-film",
    "automotive",
    "mother-baby",
    "cosmetics",
    "other",
]

CITIES = [
    "Istanbul",
    "Ankara",
    "Izmir",
    "Bursa",
    "Antalya",
    "Adana",
    "Konya",
    "Gaziantep",
    "Kocaeli",
    "Mersin",
    "Kayseri",
    "Eskisehir",
]

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}

INSTRUCTIONS = f"""You are a B2B sourcing assistant helping buyers write detailed product requests.

Your job:
1. Ask clarifying questions about the product
2. Suggest a fitting category and fields
3. Make sure every required field is collected
4. Point out missing or vague information
5. Summarize what was collected at the end

Rules:
- Be brief (3-4 sentences at most)
- Ask at most 1-2 questions at a time
- When everything is collected say "All information collected, you can fill in the form"

Categories: {", ".join(CATEGORIES)}

Required fields, in order: productName (with brand and model), quantity, category,
description, warrantyStatus (electronics only), deliveryCity, deliveryDistrict,
maxBudget (optional but recommended), offerDeadline (DD/MM/YYYY),
exampleImageUrl (optional), brandModel (if any).

If the buyer does not know a budget, suggest running a price research."""

request_assistant_agent = Agent(
    name="RequestAssistant",
    instructions=INSTRUCTIONS,
)

_PRODUCT_PATTERNS = [
    re.compile(
        r"(?:i want to buy|looking for|i need|we need|searching for)\s+(?:an?\s+|some\s+)?"
        r"([A-Za-z0-9][A-Za-z0-9\s-]*?)(?=\s+(?:units|pieces|pcs|for|with)\b|[,.!?]|$)",
        re.IGNORECASE,
    ),
    re.compile(r"product\s*:\s*([A-Za-z0-9][A-Za-z0-9\s-]+)", re.IGNORECASE),
]
_QUANTITY = re.compile(r"(\d+)\s*(?:units?|pieces?|pcs|items?)\b", re.IGNORECASE)
_SPECS = re.compile(
    r"[^.!?]*\b(?:ram|processor|cpu|screen|display|size|colou?r|material|capacity|power|storage)\b[^.!?]*[.!?]",
    re.IGNORECASE,
)
_REQUIREMENTS = re.compile(r"[^.!?]*\b(?:must|should|required|need to)\b[^.!?]*[.!?]", re.IGNORECASE)
_BUDGET = re.compile(
    r"(?:budget[^0-9$]{0,20})?\$?\s*(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?\s*(?:usd|dollars|\$|tl|lira)",
    re.IGNORECASE,
)
_DATE_NUMERIC = re.compile(r"\b(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})\b")
_DATE_MONTH = re.compile(r"\b(\d{1,2})\s+(" + "|".join(MONTHS) + r")\b", re.IGNORECASE)
_DATE_DAYS = re.compile(r"\bwithin\s+(\d+)\s+days?\b", re.IGNORECASE)
_IMAGE_URL = re.compile(r"(https?://\S+\.(?:jpg|jpeg|png|gif|webp))", re.IGNORECASE)
_BRAND_MODEL = [
    re.compile(r"\bbrand\s*[:\s]\s*([A-Za-z0-9][A-Za-z0-9\s-]*?)(?=[,.]|$)", re.IGNORECASE),
    re.compile(r"\bmodel\s*[:\s]\s*([A-Za-z0-9][A-Za-z0-9\s-]*?)(?=[,.]|$)", re.IGNORECASE),
]


def extract_form_suggestions(conversation: str) -> dict[str, Any]:
    """Guess form field values from the conversation text."""
    suggestions: dict[str, Any] = {}
    lowered = conversation.lower()

    for category in CATEGORIES:
        if category in lowered:
            suggestions["category"] = category
            break

    for pattern in _PRODUCT_PATTERNS:
        match = pattern.search(conversation)
        if match:
            name = match.group(1).strip()
            if len(name) > 2 and not name.isdigit():
                suggestions["productName"] = name
                break

    quantity = _QUANTITY.search(conversation)
    if quantity:
        suggestions["quantity"] = int(quantity.group(1))

    description_parts = [m.group(0).strip() for m in _SPECS.finditer(conversation)]
    description_parts += [m.group(0).strip() for m in _REQUIREMENTS.finditer(conversation)][:2]
    if description_parts:
        suggestions["description"] = " ".join(dict.fromkeys(description_parts))[:500]

    if suggestions.get("category") == "electronics" or "warranty" in lowered:
        if re.search(r"\b(?:no warranty|without (?:a )?warranty)\b", lowered):
            suggestions["warrantyStatus"] = "No"
        elif re.search(r"\b(?:with (?:a )?warranty|warranty included|need (?:a )?warranty)\b", lowered):
            suggestions["warrantyStatus"] = "Yes"

    budget = _BUDGET.search(conversation)
    if budget:
        whole = budget.group(1).replace(",", "")
        cents = budget.group(2) or "0"
        suggestions["maxBudget"] = float(f"{whole}.{cents}")

    for city in CITIES:
        if city.lower() in lowered:
            suggestions["deliveryCity"] = city
            district = re.search(rf"{city}[,\s]+([A-Za-z]+)", conversation, re.IGNORECASE)
            if district:
                suggestions["deliveryDistrict"] = district.group(1)
            break

    deadline = _extract_deadline(conversation)
    if deadline:
        suggestions["offerDeadline"] = deadline

    image = _IMAGE_URL.search(conversation)
    if image:
        suggestions["exampleImageUrl"] = image.group(1)

    for pattern in _BRAND_MODEL:
        match = pattern.search(conversation)
        if match and match.group(1).strip():
            suggestions["brandModel"] = match.group(1).strip()
            break

    return suggestions


def _extract_deadline(conversation: str) -> Optional[str]:
    """Deadline as DD/MM/YYYY."""
    numeric = _DATE_NUMERIC.search(conversation)
    if numeric:
        day, month, year = numeric.groups()
        return f"{int(day):02d}/{int(month):02d}/{year}"

    named = _DATE_MONTH.search(conversation)
    if named:
        day, month_name = named.groups()
        month = MONTHS[month_name.lower()]
        return f"{int(day):02d}/{month:02d}/{utcnow().year}"

    relative = _DATE_DAYS.search(conversation)
    if relative:
        deadline = utcnow() + timedelta(days=int(relative.group(1)))
        return deadline.strftime("%d/%m/%Y")
    return None


def build_agent_input(
    messages: list[dict[str, str]],
    current_form_data: Optional[dict[str, Any]] = None,
) -> list[dict[str, str]]:
    """Convert the chat history to agent input, with the form state on the last turn."""
    items = []
    for message in messages:
        role = "user" if message.get("role") == "user" else "assistant"
        items.append({"role": role, "content": message.get("content", "")})

    form_context = "\n\nCurrent form data:\n" + json.dumps(
        current_form_data or {}, indent=2, ensure_ascii=False
    )
    items.append({"role": "user", "content": form_context.strip()})
    return items


async def run_request_assistant(
    messages: list[dict[str, str]],
    current_form_data: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Answer the latest buyer message and suggest form values.

    Raises:
        ExternalServiceError: The provider failed; there is no fallback reply
    """
    from marketplace.config.settings import settings

    if not settings.openai_api_key:
        raise ExternalServiceError("AI service is not configured")

    set_default_openai_key(settings.openai_api_key)
    agent_input = build_agent_input(messages, current_form_data)
    run_config = RunConfig(model=settings.ai_model)
    start = time.perf_counter()
    last_error: Optional[Exception] = None

    for attempt in range(1, max(1, settings.ai_max_attempts) + 1):
        try:
            result = await asyncio.wait_for(
                Runner.run(request_assistant_agent, agent_input, run_config=run_config),
                timeout=settings.ai_timeout_seconds,
            )
            break
        except (asyncio.TimeoutError, AgentsException, openai.OpenAIError) as e:
            last_error = e
            logger.warning("Request assistant failed", attempt=attempt, error=str(e) or type(e).__name__)
    else:
        log_ai_call(
            "request_assistant",
            duration_ms=(time.perf_counter() - start) * 1000,
            error=str(last_error),
        )
        raise ExternalServiceError() from last_error

    reply = str(result.final_output or "").strip()
    log_ai_call("request_assistant", duration_ms=(time.perf_counter() - start) * 1000)

    conversation = " ".join(m.get("content", "") for m in messages) + " " + reply
    return {
        "message": reply,
        "suggestions": extract_form_suggestions(conversation),
    }
