"""State management exports."""

from marketplace.state.models import (
    BUYER_DECISIONS,
    OFFER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    REQUEST_TRANSITIONS,
    OfferStatus,
    OrderStatus,
    PaymentStatus,
    RequestStatus,
    Role,
    can_transition,
    ensure_transition,
)

__all__ = [
    "BUYER_DECISIONS",
    "OFFER_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "REQUEST_TRANSITIONS",
    "OfferStatus",
    "OrderStatus",
    "PaymentStatus",
    "RequestStatus",
    "Role",
    "can_transition",
    "ensure_transition",
]
