"""Negotiation repository. Messages are append-only."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.db.models import Negotiation, utcnow


class NegotiationRepository:
    """Append and read negotiation messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        offer_id: str,
        sender_id: str,
        message: str,
        proposed_price: Optional[float] = None,
        proposed_delivery: Optional[int] = None,
        is_ai_generated: bool = False,
    ) -> Negotiation:
        """Append a message to an offer's thread."""
        negotiation = Negotiation(
            offer_id=offer_id,
            sender_id=sender_id,
            message=message,
            proposed_price=proposed_price,
            proposed_delivery=proposed_delivery,
            is_ai_generated=is_ai_generated,
            created_at=utcnow(),
        )
        self.session.add(negotiation)
        await self.session.flush()
        await self.session.refresh(negotiation)
        return negotiation

    async def list_for_offer(self, offer_id: str) -> list[Negotiation]:
        """List an offer's messages, oldest first, ties broken by insertion order."""
        stmt = (
            select(Negotiation)
            .where(Negotiation.offer_id == offer_id)
            .options(selectinload(Negotiation.sender))
            .order_by(Negotiation.created_at.asc(), Negotiation.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
