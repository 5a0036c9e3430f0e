"""Offer repository for database operations."""

from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from marketplace.db.models import Offer, ProductRequest, utcnow
from marketplace.errors import ConflictError

logger = structlog.get_logger()


class OfferRepository:
    """CRUD operations for offers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, offer_id: str) -> Optional[Offer]:
        """Get offer by ID with its product request and seller loaded.

        Args:
            offer_id: Offer primary key

        Returns:
            Offer or None
        """
        stmt = (
            select(Offer)
            .where(Offer.id == offer_id)
            .options(
                selectinload(Offer.product_request).selectinload(ProductRequest.user),
                selectinload(Offer.seller),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_request_and_seller(
        self, product_request_id: str, seller_id: str
    ) -> Optional[Offer]:
        """Get the (single) offer a seller made on a request."""
        stmt = select(Offer).where(
            Offer.product_request_id == product_request_id,
            Offer.seller_id == seller_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        product_request_id: str,
        seller_id: str,
        price: float,
        delivery_time: int,
        message: Optional[str] = None,
    ) -> Offer:
        """Create a new pending offer.

        Raises:
            ConflictError: The seller already has an offer on this request
        """
        offer = Offer(
            product_request_id=product_request_id,
            seller_id=seller_id,
            price=price,
            delivery_time=delivery_time,
            message=message,
            status="pending",
            responded_at=None,
        )

        self.session.add(offer)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            # Only the (request, seller) unique index is a duplicate
            if await self.get_by_request_and_seller(product_request_id, seller_id) is not None:
                raise ConflictError("You have already made an offer for this request")
            raise

        await self.session.refresh(offer)
        return offer

    async def set_status_if(self, offer: Offer, expected: str, status: str, **values) -> bool:
        """Compare-and-set the offer status, writing ``values`` alongside.

        Returns:
            False if the offer was no longer in ``expected``
        """
        values["updated_at"] = utcnow()
        stmt = (
            update(Offer)
            .where(Offer.id == offer.id, Offer.status == expected)
            .values(status=status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False

        set_committed_value(offer, "status", status)
        for name, value in values.items():
            set_committed_value(offer, name, value)
        return True

    async def list_for_seller(self, seller_id: str) -> list[Offer]:
        """List offers sent by a seller, newest first."""
        stmt = (
            select(Offer)
            .where(Offer.seller_id == seller_id)
            .options(selectinload(Offer.product_request).selectinload(ProductRequest.user))
            .order_by(Offer.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_buyer(self, buyer_id: str) -> list[Offer]:
        """List offers received on a buyer's requests, newest first."""
        stmt = (
            select(Offer)
            .join(Offer.product_request)
            .where(ProductRequest.user_id == buyer_id)
            .options(
                selectinload(Offer.product_request),
                selectinload(Offer.seller),
            )
            .order_by(Offer.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
