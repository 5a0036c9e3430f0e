"""FastAPI routes for offer negotiation threads."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_negotiation
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.negotiations import NegotiationThread

router = APIRouter(prefix="/negotiations", tags=["negotiations"])


class NegotiationCreate(CamelModel):
    offer_id: str
    message: Optional[str] = None
    proposed_price: Optional[float] = None
    proposed_delivery: Optional[int] = None
    is_ai_generated: bool = False


@router.get("")
async def list_negotiations(
    offer_id: str = Query(alias="offerId"),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """The offer's messages, oldest first. Buyer or seller of the offer only."""
    messages = await NegotiationThread(session).list(actor, offer_id)
    return {"negotiations": [serialize_negotiation(m, with_sender=True) for m in messages]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def post_negotiation(
    body: NegotiationCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Append a message to the offer's thread.

    A proposed price or delivery time is stored on the message only.
    """
    negotiation = await NegotiationThread(session).post(
        actor,
        body.offer_id,
        body.message,
        proposed_price=body.proposed_price,
        proposed_delivery=body.proposed_delivery,
        is_ai_generated=body.is_ai_generated,
    )
    return {"negotiation": serialize_negotiation(negotiation)}
