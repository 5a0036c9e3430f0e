"""Account registration, login, onboarding and profile."""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.guard import Actor, Capability, require_capability
from marketplace.auth.passwords import hash_password, verify_password
from marketplace.auth.sessions import create_session_token
from marketplace.db.models import User
from marketplace.db.repository import UserRepository
from marketplace.errors import ConflictError, NotFound, Unauthenticated, ValidationFailed
from marketplace.logging import log_auth_failure
from marketplace.state.models import Role

logger = structlog.get_logger()

ONBOARDING_ROLES = {Role.BUYER.value, Role.SELLER.value}


class AccountService:
    """User accounts."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def register(self, name: str, email: str, password: str) -> User:
        if await self.users.get_by_email(email) is not None:
            raise ConflictError("User already exists")

        user = await self.users.create(
            email=email,
            password_hash=hash_password(password),
            name=name.strip(),
        )
        await self.session.commit()
        return user

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and issue a session token.

        Raises:
            Unauthenticated: Unknown email or wrong password (same message for both)
        """
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            log_auth_failure(reason="bad_credentials", email=email)
            raise Unauthenticated("Invalid email or password")

        token = create_session_token(user.id, user.email, user.role)
        logger.info("User logged in", user_id=user.id)
        return user, token

    async def _current(self, actor: Actor) -> User:
        user = await self.users.get_by_id(actor.id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def complete_onboarding(
        self,
        actor: Actor,
        role: str,
        categories: list[str],
        city: str,
        postal_code: Optional[str] = None,
        notifications: bool = True,
        bio: Optional[str] = None,
    ) -> User:
        if role not in ONBOARDING_ROLES:
            raise ValidationFailed.for_field("role", "Role must be 'buyer' or 'seller'")

        user = await self._current(actor)
        user.role = role
        user.categories = categories
        user.city = city
        user.postal_code = postal_code or None
        user.notifications = notifications
        user.bio = bio or None
        user.onboarding_completed = True

        await self.session.flush()
        await self.session.commit()
        logger.info("Onboarding completed", user_id=user.id, role=role)
        return user

    async def profile(self, actor: Actor) -> tuple[User, int, int]:
        """The user with their request and payment counts."""
        user = await self._current(actor)
        return (
            user,
            await self.users.count_requests(user.id),
            await self.users.count_payments(user.id),
        )

    async def update_profile(self, actor: Actor, **fields) -> User:
        """Update only the supplied profile fields."""
        user = await self._current(actor)
        if "categories" in fields:
            categories = fields.pop("categories")
            if categories is not None:
                user.categories = categories
        await self.users.update(user, **fields)
        await self.session.commit()
        return user

    async def list_users(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[str] = None,
    ) -> tuple[list[tuple[User, int, int]], int]:
        require_capability(actor, Capability.MANAGE_USERS)
        return await self.users.list_page(page=page, limit=limit, search=search, role=role)
