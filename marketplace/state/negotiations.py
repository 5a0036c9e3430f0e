"""Negotiation thread attached to an offer. Append-only."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.guard import Actor, Relation, require_offer_party
from marketplace.db.models import Negotiation, Offer
from marketplace.db.repository import NegotiationRepository, OfferRepository
from marketplace.errors import NotFound, ValidationFailed
from marketplace.logging import log_negotiation_message
from marketplace.state.offers import is_positive_amount


def validate_message(
    message: Optional[str],
    proposed_price: Optional[float] = None,
    proposed_delivery: Optional[int] = None,
) -> str:
    """Return the trimmed message, or raise ValidationFailed."""
    text = (message or "").strip()
    if not text:
        raise ValidationFailed.for_field("message", "Message is required")
    if proposed_price is not None and not is_positive_amount(proposed_price):
        raise ValidationFailed.for_field("proposedPrice", "Proposed price must be greater than zero")
    if proposed_delivery is not None and (
        isinstance(proposed_delivery, bool)
        or not isinstance(proposed_delivery, int)
        or proposed_delivery <= 0
    ):
        raise ValidationFailed.for_field(
            "proposedDelivery", "Proposed delivery must be a positive number of days"
        )
    return text


class NegotiationThread:
    """Post to and read an offer's negotiation thread."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.offers = OfferRepository(session)
        self.messages = NegotiationRepository(session)

    async def _authorize(self, actor: Actor, offer_id: str) -> tuple[Offer, Relation]:
        offer = await self.offers.get_by_id(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        relation = require_offer_party(
            actor, offer, "You are not authorized to access this negotiation"
        )
        return offer, relation

    async def post(
        self,
        actor: Actor,
        offer_id: str,
        message: Optional[str],
        proposed_price: Optional[float] = None,
        proposed_delivery: Optional[int] = None,
        is_ai_generated: bool = False,
    ) -> Negotiation:
        """Append a message from the offer's buyer or seller.

        A proposed price is recorded on the message only; the offer's price
        is not changed.
        """
        text = validate_message(message, proposed_price, proposed_delivery)
        offer, relation = await self._authorize(actor, offer_id)

        negotiation = await self.messages.append(
            offer_id=offer.id,
            sender_id=actor.id,
            message=text,
            proposed_price=proposed_price,
            proposed_delivery=proposed_delivery,
            is_ai_generated=is_ai_generated,
        )
        log_negotiation_message(
            offer_id=offer.id,
            sender_id=actor.id,
            relation=relation.value,
            proposed_price=proposed_price,
            proposed_delivery=proposed_delivery,
            is_ai_generated=is_ai_generated,
        )
        await self.session.commit()
        return negotiation

    async def list(self, actor: Actor, offer_id: str) -> list[Negotiation]:
        """The thread in conversation order (created_at, then insertion order)."""
        await self._authorize(actor, offer_id)
        return await self.messages.list_for_offer(offer_id)
