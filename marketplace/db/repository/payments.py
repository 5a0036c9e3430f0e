"""Payment and order repository."""

from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.db.models import Offer, Order, Payment, utcnow
from marketplace.errors import ConflictError

logger = structlog.get_logger()

ESTIMATED_DELIVERY_DAYS = 7
ORDER_NUMBER_ATTEMPTS = 3

TIMELINE_STEPS = [
    ("placed", "Order Placed", "Your order has been confirmed"),
    ("processing", "Processing", "Seller is preparing your order"),
    ("shipped", "Shipped", "Your order is on the way"),
    ("delivered", "Delivered", "Order delivered to your address"),
]


def build_timeline(current: str, timestamps: Optional[dict[str, str]] = None) -> list[dict]:
    """Build the order timeline with every step up to ``current`` completed."""
    timestamps = timestamps or {}
    step_ids = [step_id for step_id, _, _ in TIMELINE_STEPS]
    current_index = step_ids.index(current)

    timeline = []
    for index, (step_id, label, description) in enumerate(TIMELINE_STEPS):
        timeline.append(
            {
                "id": step_id,
                "label": label,
                "description": description,
                "timestamp": timestamps.get(step_id),
                "completed": index <= current_index,
                "current": index == current_index,
            }
        )
    return timeline


class PaymentRepository:
    """Payments and the orders created alongside them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .options(selectinload(Payment.offer).selectinload(Offer.product_request))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_offer(self, offer_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.offer_id == offer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_order_for_payment(self, payment_id: str) -> Optional[Order]:
        stmt = select(Order).where(Order.payment_id == payment_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def next_order_number(self) -> str:
        """Next ``ORD-<year>-<seq>`` number for the current year."""
        year = utcnow().year
        prefix = f"ORD-{year}-"
        stmt = select(func.count(Order.id)).where(Order.order_number.like(f"{prefix}%"))
        count = (await self.session.execute(stmt)).scalar_one()
        return f"{prefix}{count + 1:03d}"

    async def create_with_order(
        self,
        offer: Offer,
        buyer_id: str,
        product_name: str,
    ) -> tuple[Payment, Order]:
        """Create a pending payment and its placed order.

        Order numbers are sequential per year, so two buyers paying at the
        same moment can draw the same number; the loser retries with the
        next one.

        Raises:
            ConflictError: A payment already exists for this offer
        """
        offer_id, amount = offer.id, offer.price

        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            now = utcnow()
            payment = Payment(
                offer_id=offer_id,
                buyer_id=buyer_id,
                amount=amount,
                status="pending",
                created_at=now,
            )
            self.session.add(payment)
            try:
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                if await self.get_by_offer(offer_id) is not None:
                    raise ConflictError("A payment already exists for this offer")
                raise

            order = Order(
                order_number=await self.next_order_number(),
                buyer_id=buyer_id,
                offer_id=offer_id,
                payment_id=payment.id,
                product_name=product_name,
                total_amount=amount,
                current_status="placed",
                estimated_delivery=now + timedelta(days=ESTIMATED_DELIVERY_DAYS),
                created_at=now,
            )
            order.timeline = build_timeline("placed", {"placed": now.isoformat()})
            self.session.add(order)
            try:
                await self.session.flush()
            except IntegrityError:
                await self.session.rollback()
                if attempt == ORDER_NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    "Order number taken, retrying",
                    order_number=order.order_number,
                    attempt=attempt,
                )
                continue

            logger.info(
                "Created payment",
                payment_id=payment.id,
                order_number=order.order_number,
                offer_id=offer_id,
                amount=amount,
            )
            return payment, order

    async def advance_order(self, order: Order, status: str) -> Order:
        """Move an order to ``status`` and stamp the timeline step."""
        timestamps = {step["id"]: step.get("timestamp") for step in order.timeline}
        timestamps[status] = utcnow().isoformat()
        order.current_status = status
        order.timeline = build_timeline(status, timestamps)
        await self.session.flush()
        return order

    async def list_payments(self, buyer_id: str) -> list[Payment]:
        """List a buyer's payments with offer and request, newest first."""
        stmt = (
            select(Payment)
            .where(Payment.buyer_id == buyer_id)
            .options(
                selectinload(Payment.offer).selectinload(Offer.product_request),
                selectinload(Payment.offer).selectinload(Offer.seller),
            )
            .order_by(Payment.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_orders(self, buyer_id: str) -> list[Order]:
        """List a buyer's orders, newest first."""
        stmt = (
            select(Order)
            .where(Order.buyer_id == buyer_id)
            .order_by(Order.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

