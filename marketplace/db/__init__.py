"""Database layer with SQLAlchemy ORM."""

from .base import Base, get_engine, get_async_session_factory, init_db, reset_engine
from .models import (
    Address,
    Negotiation,
    Offer,
    Order,
    Payment,
    ProductRequest,
    User,
)
from .session import get_db_session, get_session

__all__ = [
    "Base",
    "get_engine",
    "get_async_session_factory",
    "init_db",
    "reset_engine",
    "Address",
    "Negotiation",
    "Offer",
    "Order",
    "Payment",
    "ProductRequest",
    "User",
    "get_db_session",
    "get_session",
]
