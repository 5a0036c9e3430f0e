"""Authorization guard.

Resolves the acting user from the session token and answers the two
questions every write path asks: does the actor hold a capability, and how
is the actor related to a given offer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.sessions import decode_session_token
from marketplace.db.models import Offer
from marketplace.db.repository import UserRepository
from marketplace.db.session import get_session
from marketplace.errors import Forbidden, Unauthenticated
from marketplace.logging import log_auth_failure, set_request_context
from marketplace.state.models import Role


class Capability(str, Enum):
    """Actions gated by role."""

    CREATE_REQUEST = "create_request"
    RESPOND_TO_OFFER = "respond_to_offer"
    INITIATE_PAYMENT = "initiate_payment"
    SUBMIT_OFFER = "submit_offer"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.BUYER: frozenset(
        {Capability.CREATE_REQUEST, Capability.RESPOND_TO_OFFER, Capability.INITIATE_PAYMENT}
    ),
    Role.SELLER: frozenset({Capability.SUBMIT_OFFER}),
    Role.ADMIN: frozenset({Capability.MANAGE_USERS}),
}


def capabilities_for(role: Optional[str]) -> frozenset[Capability]:
    """Capabilities granted by a role. Unknown or missing roles grant nothing."""
    if not role:
        return frozenset()
    try:
        return ROLE_CAPABILITIES[Role(role)]
    except ValueError:
        return frozenset()


class Relation(str, Enum):
    """How an actor relates to an offer."""

    BUYER = "buyer"
    SELLER = "seller"
    NONE = "none"


@dataclass(frozen=True)
class Actor:
    """The authenticated user behind a request."""

    id: str
    email: str
    role: Optional[str] = None
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @classmethod
    def for_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            capabilities=capabilities_for(user.role),
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def require_capability(actor: Actor, capability: Capability, message: Optional[str] = None) -> None:
    """Raise Forbidden unless the actor holds ``capability``."""
    if not actor.can(capability):
        log_auth_failure(reason=f"missing_capability:{capability.value}")
        raise Forbidden(message or "You are not allowed to perform this action")


def relation_to_offer(actor: Actor, offer: Offer) -> Relation:
    """Classify the actor against an offer.

    The offer's ``product_request`` must be loaded.
    """
    if offer.product_request.user_id == actor.id:
        return Relation.BUYER
    if offer.seller_id == actor.id:
        return Relation.SELLER
    return Relation.NONE


def require_offer_party(actor: Actor, offer: Offer, message: Optional[str] = None) -> Relation:
    """Return the actor's relation to the offer, or raise Forbidden if unrelated."""
    relation = relation_to_offer(actor, offer)
    if relation is Relation.NONE:
        log_auth_failure(reason="not_offer_party")
        raise Forbidden(message or "You are not authorized to access this offer")
    return relation


def _extract_token(request: Request) -> Optional[str]:
    from marketplace.config.settings import settings

    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(settings.session_cookie_name)


async def get_current_actor(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Actor:
    """FastAPI dependency resolving the session to an Actor.

    Raises:
        Unauthenticated: No token, a bad or expired token, or an unknown user
    """
    token = _extract_token(request)
    if not token:
        raise Unauthenticated()

    payload = decode_session_token(token)
    if payload is None:
        log_auth_failure(reason="invalid_token", path=request.url.path)
        raise Unauthenticated()

    user = await UserRepository(session).get_by_id(payload["sub"])
    if user is None:
        log_auth_failure(reason="unknown_user", path=request.url.path)
        raise Unauthenticated()

    set_request_context(user_id=user.id)
    return Actor.for_user(user)
