"""SQLAlchemy ORM models."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the columns store naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


class User(Base):
    """Marketplace account. Role stays null until onboarding."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)

    # Onboarding / profile
    categories_json: Mapped[str] = mapped_column(Text, default="[]")
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    product_requests: Mapped[list["ProductRequest"]] = relationship(back_populates="user")
    sent_offers: Mapped[list["Offer"]] = relationship(back_populates="seller")

    @property
    def categories(self) -> list[str]:
        return json.loads(self.categories_json or "[]")

    @categories.setter
    def categories(self, value: list[str]) -> None:
        self.categories_json = json.dumps(value, ensure_ascii=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class ProductRequest(Base):
    """A buyer's sourcing request."""

    __tablename__ = "product_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    max_budget: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    delivery_city: Mapped[str] = mapped_column(String(100), nullable=False)
    delivery_district: Mapped[str] = mapped_column(String(100), nullable=False)
    offer_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    example_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand_model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dynamic_fields_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship(back_populates="product_requests")
    offers: Mapped[list["Offer"]] = relationship(back_populates="product_request")

    @property
    def dynamic_fields(self) -> Optional[dict[str, Any]]:
        if not self.dynamic_fields_json:
            return None
        return json.loads(self.dynamic_fields_json)

    @dynamic_fields.setter
    def dynamic_fields(self, value: Optional[dict[str, Any]]) -> None:
        self.dynamic_fields_json = json.dumps(value, ensure_ascii=False) if value else None

    def __repr__(self) -> str:
        return f"<ProductRequest(id={self.id}, product={self.product_name}, status={self.status})>"


class Offer(Base):
    """A seller's proposal against one product request."""

    __tablename__ = "offers"
    __table_args__ = (
        UniqueConstraint("product_request_id", "seller_id", name="uq_offer_request_seller"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    product_request_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("product_requests.id"), nullable=False, index=True
    )
    seller_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    price: Mapped[float] = mapped_column(Float, nullable=False)
    delivery_time: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    buyer_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    product_request: Mapped["ProductRequest"] = relationship(back_populates="offers")
    seller: Mapped["User"] = relationship(back_populates="sent_offers")
    negotiations: Mapped[list["Negotiation"]] = relationship(
        back_populates="offer", order_by="Negotiation.id"
    )

    def __repr__(self) -> str:
        return f"<Offer(id={self.id}, price={self.price}, status={self.status})>"


class Negotiation(Base):
    """One message in an offer's thread. Rows are never updated."""

    __tablename__ = "negotiations"

    # Integer key doubles as insertion sequence for ordering ties
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    offer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("offers.id"), nullable=False, index=True
    )
    sender_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    proposed_delivery: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    offer: Mapped["Offer"] = relationship(back_populates="negotiations")
    sender: Mapped["User"] = relationship()

    def __repr__(self) -> str:
        return f"<Negotiation(id={self.id}, offer_id={self.offer_id}, sender_id={self.sender_id})>"


class Payment(Base):
    """Payment for an accepted offer."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    offer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("offers.id"), unique=True, nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    offer: Mapped["Offer"] = relationship()

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, status={self.status})>"


class Order(Base):
    """Shipment-tracking projection of a payment."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    order_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    offer_id: Mapped[str] = mapped_column(String(36), ForeignKey("offers.id"), nullable=False)
    payment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.id"), nullable=False
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    current_status: Mapped[str] = mapped_column(String(20), default="placed")
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    timeline_json: Mapped[str] = mapped_column(Text, default="[]")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    payment: Mapped["Payment"] = relationship()

    @property
    def timeline(self) -> list[dict[str, Any]]:
        return json.loads(self.timeline_json or "[]")

    @timeline.setter
    def timeline(self, value: list[dict[str, Any]]) -> None:
        self.timeline_json = json.dumps(value, ensure_ascii=False)

    def __repr__(self) -> str:
        return f"<Order(number={self.order_number}, status={self.current_status})>"


class Address(Base):
    """Buyer shipping address."""

    __tablename__ = "addresses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    address_line: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    district: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="home")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<Address(id={self.id}, title={self.title}, default={self.is_default})>"
