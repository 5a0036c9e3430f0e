"""Offer lifecycle: submission, buyer response and withdrawal.

Every write re-reads the offer and its request, recomputes the actor's
relation, checks the transition table, and only then applies the change.
Status writes are compare-and-set so a concurrent writer cannot move an
offer or request out of a state it has already left.
"""

import math
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.guard import (
    Actor,
    Capability,
    Relation,
    relation_to_offer,
    require_capability,
    require_offer_party,
)
from marketplace.db.models import Offer, utcnow
from marketplace.db.repository import OfferRepository, ProductRequestRepository
from marketplace.errors import (
    ConflictError,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationFailed,
)
from marketplace.logging import log_offer_event
from marketplace.state.models import (
    BUYER_DECISIONS,
    OFFER_TRANSITIONS,
    OfferStatus,
    RequestStatus,
    ensure_transition,
)


def is_positive_amount(value) -> bool:
    """A finite number above zero (bools, NaN and infinities excluded)."""
    return (
        not isinstance(value, bool)
        and isinstance(value, (int, float))
        and math.isfinite(value)
        and value > 0
    )


def validate_offer_terms(price, delivery_time) -> None:
    """Price must be positive, delivery a positive whole number of days."""
    if not is_positive_amount(price):
        raise ValidationFailed.for_field("price", "Price must be greater than zero")
    if isinstance(delivery_time, bool) or not isinstance(delivery_time, int) or delivery_time <= 0:
        raise ValidationFailed.for_field(
            "deliveryTime", "Delivery time must be a positive number of days"
        )


class OfferLifecycle:
    """Offer state machine bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.offers = OfferRepository(session)
        self.requests = ProductRequestRepository(session)

    async def _load(self, offer_id: str) -> Offer:
        offer = await self.offers.get_by_id(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        return offer

    async def submit_offer(
        self,
        actor: Actor,
        product_request_id: str,
        price: float,
        delivery_time: int,
        message: Optional[str] = None,
    ) -> Offer:
        """Create a pending offer from a seller on an open request.

        Raises:
            Forbidden: Actor is not a seller, or owns the request
            ValidationFailed: Bad price or delivery time
            NotFound: Request does not exist
            InvalidState: Request is closed or past its offer deadline
            ConflictError: Seller already has an offer on this request
        """
        require_capability(actor, Capability.SUBMIT_OFFER, "Only sellers can make offers")
        validate_offer_terms(price, delivery_time)

        product_request = await self.requests.get_by_id(product_request_id)
        if product_request is None:
            raise NotFound("Product request not found")

        if product_request.user_id == actor.id:
            raise Forbidden("You cannot make an offer on your own request")

        if product_request.status != RequestStatus.ACTIVE.value:
            raise InvalidState(
                "This request is no longer accepting offers",
                details={"status": product_request.status},
            )
        if product_request.offer_deadline and product_request.offer_deadline < utcnow():
            raise InvalidState("The offer deadline for this request has passed")

        existing = await self.offers.get_by_request_and_seller(product_request_id, actor.id)
        if existing is not None:
            raise ConflictError("You have already made an offer for this request")

        offer = await self.offers.create(
            product_request_id=product_request_id,
            seller_id=actor.id,
            price=float(price),
            delivery_time=delivery_time,
            message=message,
        )
        log_offer_event(
            "submitted",
            offer_id=offer.id,
            product_request_id=product_request_id,
            actor_id=actor.id,
            status=offer.status,
            price=offer.price,
            delivery_time=offer.delivery_time,
        )
        await self.session.commit()
        return offer

    async def respond_to_offer(
        self,
        actor: Actor,
        offer_id: str,
        decision: str,
        buyer_response: Optional[str] = None,
    ) -> Offer:
        """Record the buyer's accept/reject decision.

        Accepting closes the parent request; at most one offer per request
        can be accepted.

        Raises:
            NotFound: Offer does not exist
            Forbidden: Actor is not the buyer who owns the request
            ValidationFailed: Decision is not accepted/rejected
            InvalidState: Offer already decided, or request already fulfilled
        """
        offer = await self._load(offer_id)

        if relation_to_offer(actor, offer) is not Relation.BUYER:
            raise Forbidden("You are not authorized to respond to this offer")
        require_capability(
            actor, Capability.RESPOND_TO_OFFER, "You are not authorized to respond to this offer"
        )

        if decision not in {d.value for d in BUYER_DECISIONS}:
            raise ValidationFailed.for_field("status", "Status must be 'accepted' or 'rejected'")

        ensure_transition(OFFER_TRANSITIONS, offer.status, decision, subject="offer")

        product_request = offer.product_request
        if decision == OfferStatus.ACCEPTED.value:
            self._ensure_request_open(product_request.status)
            closed = await self.requests.set_status_if(
                product_request.id,
                expected=RequestStatus.ACTIVE.value,
                status=RequestStatus.COMPLETED.value,
            )
            if not closed:
                await self.session.rollback()
                raise InvalidState("request already fulfilled")

        moved = await self.offers.set_status_if(
            offer,
            expected=OfferStatus.PENDING.value,
            status=decision,
            buyer_response=buyer_response,
            responded_at=utcnow(),
        )
        if not moved:
            await self.session.rollback()
            raise InvalidState("Offer has already been answered")

        log_offer_event(
            "responded",
            offer_id=offer.id,
            product_request_id=product_request.id,
            actor_id=actor.id,
            status=offer.status,
        )
        await self.session.commit()
        return offer

    @staticmethod
    def _ensure_request_open(status: str) -> None:
        if status == RequestStatus.COMPLETED.value:
            raise InvalidState("request already fulfilled", details={"status": status})
        if status == RequestStatus.CANCELLED.value:
            raise InvalidState("request has been cancelled", details={"status": status})

    async def withdraw_offer(self, actor: Actor, offer_id: str) -> Offer:
        """Let the seller take back a pending offer."""
        offer = await self._load(offer_id)

        if relation_to_offer(actor, offer) is not Relation.SELLER:
            raise Forbidden("Only the seller who made this offer can withdraw it")

        ensure_transition(
            OFFER_TRANSITIONS, offer.status, OfferStatus.WITHDRAWN.value, subject="offer"
        )
        moved = await self.offers.set_status_if(
            offer,
            expected=OfferStatus.PENDING.value,
            status=OfferStatus.WITHDRAWN.value,
        )
        if not moved:
            await self.session.rollback()
            raise InvalidState("Offer has already been answered")

        log_offer_event(
            "withdrawn",
            offer_id=offer.id,
            product_request_id=offer.product_request_id,
            actor_id=actor.id,
            status=offer.status,
        )
        await self.session.commit()
        return offer

    async def list_offers(self, actor: Actor, role: str) -> list[Offer]:
        """Offers sent by the actor (``seller``) or received on their requests (``buyer``)."""
        if role == "seller":
            return await self.offers.list_for_seller(actor.id)
        if role == "buyer":
            return await self.offers.list_for_buyer(actor.id)
        raise ValidationFailed.for_field("role", "Role must be 'seller' or 'buyer'")

    async def get_offer(self, actor: Actor, offer_id: str) -> tuple[Offer, Relation]:
        """Fetch an offer for either of its parties."""
        offer = await self._load(offer_id)
        relation = require_offer_party(actor, offer)
        return offer, relation
