"""Product request repository for database operations."""

from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.db.models import Negotiation, ProductRequest

logger = structlog.get_logger()


class ProductRequestRepository:
    """CRUD operations for product requests."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, request_id: str) -> Optional[ProductRequest]:
        """Get product request by ID.

        Args:
            request_id: Request primary key

        Returns:
            ProductRequest or None
        """
        stmt = select(ProductRequest).where(ProductRequest.id == request_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, user_id: str, **fields: Any) -> ProductRequest:
        """Create a new product request owned by ``user_id``."""
        dynamic_fields = fields.pop("dynamic_fields", None)
        product_request = ProductRequest(user_id=user_id, **fields)
        product_request.dynamic_fields = dynamic_fields

        self.session.add(product_request)
        await self.session.flush()
        await self.session.refresh(product_request)

        logger.info(
            "Created product request",
            request_id=product_request.id,
            user_id=user_id,
            category=product_request.category,
        )

        return product_request

    async def list_for_owner(self, user_id: str) -> list[ProductRequest]:
        """List a buyer's requests with their offers, newest first."""
        stmt = (
            select(ProductRequest)
            .where(ProductRequest.user_id == user_id)
            .options(selectinload(ProductRequest.offers))
            .order_by(ProductRequest.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(self) -> list[ProductRequest]:
        """List active requests with owner and offers, newest first."""
        stmt = (
            select(ProductRequest)
            .where(ProductRequest.status == "active")
            .options(
                selectinload(ProductRequest.user),
                selectinload(ProductRequest.offers),
            )
            .order_by(ProductRequest.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def offer_ids_with_negotiations(self, offer_ids: list[str]) -> set[str]:
        """Return the subset of ``offer_ids`` that have at least one message."""
        if not offer_ids:
            return set()
        stmt = select(Negotiation.offer_id).where(Negotiation.offer_id.in_(offer_ids)).distinct()
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def set_status_if(self, request_id: str, expected: str, status: str) -> bool:
        """Compare-and-set the request status. Returns False if another writer won."""
        stmt = (
            update(ProductRequest)
            .where(ProductRequest.id == request_id, ProductRequest.status == expected)
            .values(status=status)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
