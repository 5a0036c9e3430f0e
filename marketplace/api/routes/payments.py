"""FastAPI routes for payments and orders."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_order, serialize_payment
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.payments import PaymentService

router = APIRouter(tags=["payments"])


class PaymentCreate(CamelModel):
    offer_id: str


@router.post("/payments", status_code=status.HTTP_201_CREATED)
async def initiate_payment(
    body: PaymentCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Open a payment and an order for an accepted offer."""
    payment, order = await PaymentService(session).initiate(actor, body.offer_id)
    return {"payment": serialize_payment(payment), "order": serialize_order(order)}


@router.post("/payments/{payment_id}/complete")
async def complete_payment(
    payment_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    payment, order = await PaymentService(session).complete(actor, payment_id)
    return {
        "payment": serialize_payment(payment, with_offer=True),
        "order": serialize_order(order) if order is not None else None,
    }


@router.get("/payments")
async def list_payments(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    payments = await PaymentService(session).list_payments(actor)
    return {"payments": [serialize_payment(p, with_offer=True) for p in payments]}


@router.get("/orders")
async def list_orders(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """The buyer's orders with their timelines, newest first."""
    orders = await PaymentService(session).list_orders(actor)
    return {"orders": [serialize_order(o) for o in orders]}
