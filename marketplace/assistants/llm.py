"""Thin wrapper around the OpenAI chat completions API.

Every call is bounded by ``settings.ai_timeout_seconds`` and attempted up to
``settings.ai_max_attempts`` times. When all attempts fail the caller gets
ExternalServiceError and decides whether a heuristic fallback applies.
"""

import asyncio
import json
import re
import time
from typing import Any, Optional

import openai
import structlog
from openai import AsyncOpenAI

from marketplace.errors import ExternalServiceError
from marketplace.logging import log_ai_call

logger = structlog.get_logger()

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


def get_openai_client() -> AsyncOpenAI:
    """Get OpenAI client with API key from settings."""
    from marketplace.config.settings import settings

    if not settings.openai_api_key:
        raise ExternalServiceError("AI service is not configured")
    return AsyncOpenAI(api_key=settings.openai_api_key)


async def complete(
    prompt: str,
    system: Optional[str] = None,
    temperature: float = 0.3,
    max_tokens: int = 500,
    task: str = "completion",
) -> str:
    """Send a prompt and return the completion text.

    Args:
        prompt: User prompt
        system: Optional system prompt
        temperature: Sampling temperature
        max_tokens: Completion token limit
        task: Name used in logs

    Raises:
        ExternalServiceError: Provider not configured, or every attempt failed
    """
    from marketplace.config.settings import settings

    client = get_openai_client()

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    start = time.perf_counter()
    last_error: Optional[Exception] = None
    attempts = max(1, settings.ai_max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=settings.ai_model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=settings.ai_timeout_seconds,
            )
            text = (response.choices[0].message.content or "").strip()
            log_ai_call(task, duration_ms=(time.perf_counter() - start) * 1000)
            return text
        except (asyncio.TimeoutError, openai.OpenAIError) as e:
            last_error = e
            logger.warning(
                "AI provider call failed",
                task=task,
                attempt=attempt,
                error=str(e) or type(e).__name__,
            )

    log_ai_call(
        task,
        duration_ms=(time.perf_counter() - start) * 1000,
        error=str(last_error) or type(last_error).__name__,
    )
    raise ExternalServiceError() from last_error


def extract_json(text: str) -> Optional[dict[str, Any]]:
    """Pull the first JSON object out of free-form model output.

    Tries a fenced ```json block first, then the outermost ``{...}`` span.

    Returns:
        The parsed object, or None if nothing parseable was found
    """
    if not text:
        return None

    candidates = []
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _BARE_OBJECT.search(text)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
