"""FastAPI routes for offers."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_offer
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.offers import OfferLifecycle

router = APIRouter(prefix="/offers", tags=["offers"])


class OfferCreate(CamelModel):
    """A seller's offer on a product request."""
    product_request_id: str
    price: float
    delivery_time: int
    message: Optional[str] = None


class OfferResponse(CamelModel):
    """The buyer's decision on an offer."""
    status: str
    buyer_response: Optional[str] = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_offer(
    body: OfferCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    offer = await OfferLifecycle(session).submit_offer(
        actor,
        product_request_id=body.product_request_id,
        price=body.price,
        delivery_time=body.delivery_time,
        message=body.message,
    )
    return {"message": "Offer submitted", "offer": serialize_offer(offer)}


@router.get("")
async def list_offers(
    role: str = Query(default="seller"),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Offers the actor sent (``role=seller``) or received (``role=buyer``)."""
    offers = await OfferLifecycle(session).list_offers(actor, role)
    if role == "seller":
        items = [serialize_offer(o, with_request=True, with_buyer=True) for o in offers]
    else:
        items = [serialize_offer(o, with_request=True, with_seller=True) for o in offers]
    return {"offers": items}


@router.get("/{offer_id}")
async def get_offer(
    offer_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    offer, relation = await OfferLifecycle(session).get_offer(actor, offer_id)
    data = serialize_offer(offer, with_request=True, with_seller=True, with_buyer=True)
    data["viewerRole"] = relation.value
    return {"offer": data}


@router.post("/{offer_id}/respond")
async def respond_to_offer(
    offer_id: str,
    body: OfferResponse,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Accept or reject a pending offer. Buyer only."""
    offer = await OfferLifecycle(session).respond_to_offer(
        actor, offer_id, decision=body.status, buyer_response=body.buyer_response
    )
    return {
        "message": f"Offer {offer.status}",
        "offer": serialize_offer(offer, with_request=True, with_seller=True),
    }


@router.post("/{offer_id}/withdraw")
async def withdraw_offer(
    offer_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    offer = await OfferLifecycle(session).withdraw_offer(actor, offer_id)
    return {"message": "Offer withdrawn", "offer": serialize_offer(offer)}
