"""Repositories over the ORM models."""

from .addresses import AddressRepository
from .negotiations import NegotiationRepository
from .offers import OfferRepository
from .payments import PaymentRepository
from .product_requests import ProductRequestRepository
from .users import UserRepository

__all__ = [
    "AddressRepository",
    "NegotiationRepository",
    "OfferRepository",
    "PaymentRepository",
    "ProductRequestRepository",
    "UserRepository",
]
