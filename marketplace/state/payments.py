"""Payments, orders and buyer addresses."""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.guard import (
    Actor,
    Capability,
    Relation,
    relation_to_offer,
    require_capability,
)
from marketplace.db.models import Address, Order, Payment, utcnow
from marketplace.db.repository import AddressRepository, OfferRepository, PaymentRepository
from marketplace.errors import ConflictError, Forbidden, InvalidState, NotFound
from marketplace.state.models import (
    PAYMENT_TRANSITIONS,
    OfferStatus,
    OrderStatus,
    PaymentStatus,
    ensure_transition,
)

logger = structlog.get_logger()


class PaymentService:
    """Payment initiation and completion for accepted offers."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.offers = OfferRepository(session)
        self.payments = PaymentRepository(session)

    async def initiate(self, actor: Actor, offer_id: str) -> tuple[Payment, Order]:
        """Open a pending payment and a placed order for an accepted offer."""
        offer = await self.offers.get_by_id(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        if relation_to_offer(actor, offer) is not Relation.BUYER:
            raise Forbidden("Only the buyer of this offer can pay for it")
        require_capability(actor, Capability.INITIATE_PAYMENT)

        if offer.status != OfferStatus.ACCEPTED.value:
            raise InvalidState(
                "Only accepted offers can be paid", details={"status": offer.status}
            )
        if await self.payments.get_by_offer(offer.id) is not None:
            raise ConflictError("A payment already exists for this offer")

        payment, order = await self.payments.create_with_order(
            offer,
            buyer_id=actor.id,
            product_name=offer.product_request.product_name,
        )
        await self.session.commit()
        return payment, order

    async def complete(self, actor: Actor, payment_id: str) -> tuple[Payment, Optional[Order]]:
        payment = await self.payments.get_by_id(payment_id)
        if payment is None:
            raise NotFound("Payment not found")
        if payment.buyer_id != actor.id:
            raise Forbidden("You are not authorized to complete this payment")

        ensure_transition(
            PAYMENT_TRANSITIONS,
            payment.status,
            PaymentStatus.COMPLETED.value,
            subject="payment",
        )
        payment.status = PaymentStatus.COMPLETED.value
        payment.completed_at = utcnow()

        order = await self.payments.get_order_for_payment(payment.id)
        if order is not None:
            await self.payments.advance_order(order, OrderStatus.PROCESSING.value)

        await self.session.commit()
        logger.info("Payment completed", payment_id=payment.id, amount=payment.amount)
        return payment, order

    async def list_payments(self, actor: Actor) -> list[Payment]:
        return await self.payments.list_payments(actor.id)

    async def list_orders(self, actor: Actor) -> list[Order]:
        return await self.payments.list_orders(actor.id)


class AddressBook:
    """A user's shipping addresses."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.addresses = AddressRepository(session)

    async def list(self, actor: Actor) -> list[Address]:
        return await self.addresses.list_for_user(actor.id)

    async def create(self, actor: Actor, is_default: bool = False, **fields) -> Address:
        address = await self.addresses.create(actor.id, is_default=is_default, **fields)
        await self.session.commit()
        return address

    async def set_default(self, actor: Actor, address_id: str) -> Address:
        address = await self.addresses.get_by_id(address_id)
        if address is None:
            raise NotFound("Address not found")
        if address.user_id != actor.id:
            raise Forbidden("You can only change your own addresses")

        await self.addresses.set_default(address)
        await self.session.commit()
        return address
