"""Lifecycle states and transition tables for marketplace records."""

from enum import Enum

from marketplace.errors import InvalidState


class Role(str, Enum):
    """Account role chosen during onboarding."""

    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    """Status of a product request."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    """Status of a seller's offer."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class PaymentStatus(str, Enum):
    """Status of a payment."""

    PENDING = "pending"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    """Shipment stage of an order."""

    PLACED = "placed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


# Terminal states have no entry.
OFFER_TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.PENDING: frozenset(
        {OfferStatus.ACCEPTED, OfferStatus.REJECTED, OfferStatus.WITHDRAWN}
    ),
}

REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.ACTIVE: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED}),
}

# Buyer decisions accepted by respond_to_offer
BUYER_DECISIONS = frozenset({OfferStatus.ACCEPTED, OfferStatus.REJECTED})


def can_transition(table: dict, current: Enum, target: Enum) -> bool:
    """Check whether ``current -> target`` is listed in ``table``."""
    return target in table.get(current, frozenset())


def ensure_transition(table: dict, current: str, target: str, subject: str = "record") -> None:
    """Raise InvalidState unless ``current -> target`` is allowed.

    Args:
        table: One of the *_TRANSITIONS tables
        current: Current status value
        target: Requested status value
        subject: Name used in the error message
    """
    enum_type = type(next(iter(table)))
    current_state = enum_type(current)
    target_state = enum_type(target)

    if not can_transition(table, current_state, target_state):
        raise InvalidState(
            f"Cannot move {subject} from '{current_state.value}' to '{target_state.value}'",
            details={"current": current_state.value, "requested": target_state.value},
        )
