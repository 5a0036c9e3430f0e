"""Advisory AI text assistance. Nothing here writes to the database."""

from .negotiation_coach import suggest_counter
from .offer_comparison import OfferComparison, fallback_comparison
from .offer_drafting import draft_offer
from .price_research import research_price
from .request_assistant import run_request_assistant

__all__ = [
    "suggest_counter",
    "OfferComparison",
    "fallback_comparison",
    "draft_offer",
    "research_price",
    "run_request_assistant",
]
