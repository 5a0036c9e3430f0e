"""User repository for database operations."""

from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.models import Offer, Payment, ProductRequest, User

logger = structlog.get_logger()


class UserRepository:
    """CRUD operations for users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID.

        Args:
            user_id: User primary key

        Returns:
            User or None
        """
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User or None
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> User:
        """Create a new user.

        Args:
            email: Email address, stored lower-cased
            password_hash: bcrypt hash
            name: Display name
            role: Initial role, normally None until onboarding

        Returns:
            Created User instance
        """
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            name=name,
            role=role,
        )

        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)

        logger.info("Created user", user_id=user.id, role=role)

        return user

    async def update(self, user: User, **fields) -> User:
        """Update an existing user.

        Only updates non-None values.
        """
        for name, value in fields.items():
            if value is not None:
                setattr(user, name, value)

        await self.session.flush()

        logger.info("Updated user", user_id=user.id, fields=sorted(k for k, v in fields.items() if v is not None))

        return user

    async def count_requests(self, user_id: str) -> int:
        stmt = select(func.count(ProductRequest.id)).where(ProductRequest.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def count_payments(self, user_id: str) -> int:
        stmt = select(func.count(Payment.id)).where(Payment.buyer_id == user_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def list_page(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[str] = None,
    ) -> tuple[list[tuple[User, int, int]], int]:
        """List users for administration.

        Args:
            page: 1-based page number
            limit: Page size
            search: Case-insensitive substring of name or email
            role: Exact role filter

        Returns:
            ([(user, request_count, offer_count), ...], total_count)
        """
        conditions = []
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern))
            )
        if role:
            conditions.append(User.role == role)

        total_stmt = select(func.count(User.id)).where(*conditions)
        total = (await self.session.execute(total_stmt)).scalar_one()

        request_counts = (
            select(func.count(ProductRequest.id))
            .where(ProductRequest.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        offer_counts = (
            select(func.count(Offer.id))
            .where(Offer.seller_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        stmt = (
            select(User, request_counts, offer_counts)
            .where(*conditions)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        rows = [(user, requests or 0, offers or 0) for user, requests, offers in result.all()]
        return rows, total
