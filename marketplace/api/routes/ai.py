"""FastAPI routes for advisory AI assistance.

Nothing here writes to the database. Suggestions reach the offer state
machine only through the offer and negotiation endpoints.
"""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import ConfigDict, Field

from marketplace.api.serializers import CamelModel
from marketplace.assistants import (
    OfferComparison,
    draft_offer,
    research_price,
    run_request_assistant,
    suggest_counter,
)
from marketplace.auth import Actor, get_current_actor
from marketplace.cache import CacheManager, get_cache_manager

router = APIRouter(prefix="/ai", tags=["ai"])


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class RequestAssistantBody(CamelModel):
    messages: list[ChatMessage] = Field(min_length=1)
    current_form_data: Optional[dict[str, Any]] = None


class PriceResearchBody(CamelModel):
    product_name: str = Field(min_length=2)


class RequestSummary(CamelModel):
    """The product request fields the assistants read. Other fields pass through."""

    model_config = ConfigDict(extra="allow")

    product_name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    max_budget: Optional[float] = Field(default=None, gt=0)
    delivery_city: Optional[str] = None


class OfferTerms(CamelModel):
    model_config = ConfigDict(extra="allow")

    price: float = Field(gt=0)
    product_request: Optional[RequestSummary] = None


class ComparedOffer(OfferTerms):
    id: str
    delivery_time: int = Field(gt=0)


class HistoryEntry(CamelModel):
    model_config = ConfigDict(extra="allow")

    sender: str = "unknown"
    message: str = ""
    proposed_price: Optional[float] = Field(default=None, gt=0)


class GenerateOfferBody(CamelModel):
    product_request: RequestSummary
    competing_prices: list[float] = Field(default_factory=list)


class NegotiateBody(CamelModel):
    offer: OfferTerms
    user_type: Literal["buyer", "seller"]
    negotiation_history: list[HistoryEntry] = Field(default_factory=list)
    user_message: Optional[str] = None


class CompareOffersBody(CamelModel):
    offers: list[ComparedOffer]
    product_request: RequestSummary = Field(default_factory=RequestSummary)


def as_payload(model: CamelModel) -> dict[str, Any]:
    """camelCase dict view of a validated body, extra fields included."""
    return model.model_dump(by_alias=True)


def get_offer_comparison(cache: CacheManager = Depends(get_cache_manager)) -> OfferComparison:
    from marketplace.config.settings import settings

    return OfferComparison(cache, settings.comparison_cache_ttl_seconds)


@router.post("/request-assistant")
async def request_assistant(
    body: RequestAssistantBody,
    actor: Actor = Depends(get_current_actor),
) -> dict:
    """Chat with the buyer and suggest product request form values."""
    result = await run_request_assistant(
        [m.model_dump() for m in body.messages],
        body.current_form_data,
    )
    return {"success": True, "data": result}


@router.post("/price-research")
async def price_research(
    body: PriceResearchBody,
    actor: Actor = Depends(get_current_actor),
) -> dict:
    data = await research_price(body.product_name)
    return {"success": True, "data": data}


@router.post("/generate-offer")
async def generate_offer(
    body: GenerateOfferBody,
    actor: Actor = Depends(get_current_actor),
) -> dict:
    """Draft price, delivery time and message for a seller's offer."""
    data, fallback = await draft_offer(as_payload(body.product_request), body.competing_prices)
    return {"success": True, "data": data, "fallback": fallback}


@router.post("/negotiate")
async def negotiate(
    body: NegotiateBody,
    actor: Actor = Depends(get_current_actor),
) -> dict:
    data, fallback = await suggest_counter(
        as_payload(body.offer),
        body.user_type,
        negotiation_history=[as_payload(entry) for entry in body.negotiation_history],
        user_message=body.user_message,
    )
    return {"success": True, "data": data, "fallback": fallback}


@router.post("/compare-offers")
async def compare_offers(
    body: CompareOffersBody,
    actor: Actor = Depends(get_current_actor),
    comparison: OfferComparison = Depends(get_offer_comparison),
) -> dict:
    """Rank offers by value and delivery. Results are cached per offer set."""
    data, cached, fallback = await comparison.compare(
        [as_payload(offer) for offer in body.offers],
        as_payload(body.product_request),
    )
    return {"success": True, "data": data, "cached": cached, "fallback": fallback}
