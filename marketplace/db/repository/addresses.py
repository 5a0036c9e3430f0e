"""Address repository for database operations."""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.models import Address


class AddressRepository:
    """CRUD operations for buyer addresses."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, address_id: str) -> Optional[Address]:
        stmt = select(Address).where(Address.id == address_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[Address]:
        """Default address first, then newest."""
        stmt = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count(Address.id)).where(Address.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def clear_default(self, user_id: str) -> None:
        stmt = (
            update(Address)
            .where(Address.user_id == user_id)
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def create(self, user_id: str, is_default: bool = False, **fields) -> Address:
        """Create an address. The first address always becomes the default."""
        if await self.count_for_user(user_id) == 0:
            is_default = True
        if is_default:
            await self.clear_default(user_id)

        address = Address(user_id=user_id, is_default=is_default, **fields)
        self.session.add(address)
        await self.session.flush()
        await self.session.refresh(address)
        return address

    async def set_default(self, address: Address) -> Address:
        await self.clear_default(address.user_id)
        address.is_default = True
        await self.session.flush()
        return address
