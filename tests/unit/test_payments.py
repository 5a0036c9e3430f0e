"""Tests for payments, orders and addresses."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from marketplace.auth.guard import Actor
from marketplace.db.repository import PaymentRepository, UserRepository
from marketplace.db.repository.payments import build_timeline
from marketplace.db.session import get_db_session
from marketplace.errors import ConflictError, Forbidden, InvalidState
from marketplace.state.offers import OfferLifecycle
from marketplace.state.payments import AddressBook, PaymentService
from marketplace.state.requests import ProductRequestService


async def create_actor(name: str, role: str) -> Actor:
    async with get_db_session() as session:
        user = await UserRepository(session).create(
            email=f"{name}@example.com", password_hash="not-a-hash", name=name, role=role
        )
        return Actor.for_user(user)


@pytest_asyncio.fixture
async def deal():
    """A request with one offer from each of two sellers."""
    buyer = await create_actor("buyer", "buyer")
    seller = await create_actor("seller", "seller")
    other_seller = await create_actor("seller2", "seller")

    async with get_db_session() as session:
        product_request = await ProductRequestService(session).create(
            buyer,
            product_name="Monitors",
            category="electronics",
            description="27 inch 4K monitors for the design team",
            quantity=4,
            delivery_city="Istanbul",
            delivery_district="Besiktas",
        )
    async with get_db_session() as session:
        offer = await OfferLifecycle(session).submit_offer(
            seller, product_request.id, price=12000.0, delivery_time=5
        )
    async with get_db_session() as session:
        pending = await OfferLifecycle(session).submit_offer(
            other_seller, product_request.id, price=11000.0, delivery_time=9
        )
    return {"buyer": buyer, "seller": seller, "offer": offer, "pending": pending}


async def accept(buyer: Actor, offer_id: str) -> None:
    async with get_db_session() as session:
        await OfferLifecycle(session).respond_to_offer(buyer, offer_id, "accepted")


class TestBuildTimeline:
    def test_marks_completed_steps(self):
        timeline = build_timeline("processing", {"placed": "t0", "processing": "t1"})

        assert [step["id"] for step in timeline] == ["placed", "processing", "shipped", "delivered"]
        assert [step["completed"] for step in timeline] == [True, True, False, False]
        assert [step["current"] for step in timeline] == [False, True, False, False]
        assert timeline[1]["timestamp"] == "t1"


class TestPaymentService:
    @pytest.mark.asyncio
    async def test_initiate_creates_payment_and_order(self, deal):
        await accept(deal["buyer"], deal["offer"].id)

        async with get_db_session() as session:
            payment, order = await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

        assert payment.status == "pending"
        assert payment.amount == 12000.0
        assert order.current_status == "placed"
        assert order.product_name == "Monitors"
        assert order.order_number.startswith("ORD-")
        assert order.order_number.endswith("-001")
        assert (order.estimated_delivery - payment.created_at).days == 7

    @pytest.mark.asyncio
    async def test_pending_offer_cannot_be_paid(self, deal):
        with pytest.raises(InvalidState):
            async with get_db_session() as session:
                await PaymentService(session).initiate(deal["buyer"], deal["pending"].id)

    @pytest.mark.asyncio
    async def test_seller_cannot_pay(self, deal):
        await accept(deal["buyer"], deal["offer"].id)

        with pytest.raises(Forbidden):
            async with get_db_session() as session:
                await PaymentService(session).initiate(deal["seller"], deal["offer"].id)

    @pytest.mark.asyncio
    async def test_one_payment_per_offer(self, deal):
        await accept(deal["buyer"], deal["offer"].id)
        async with get_db_session() as session:
            await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

        with pytest.raises(ConflictError):
            async with get_db_session() as session:
                await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

    @pytest.mark.asyncio
    async def test_complete_advances_order(self, deal):
        await accept(deal["buyer"], deal["offer"].id)
        async with get_db_session() as session:
            payment, _ = await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

        async with get_db_session() as session:
            completed, order = await PaymentService(session).complete(deal["buyer"], payment.id)

        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert order.current_status == "processing"
        assert [step["completed"] for step in order.timeline] == [True, True, False, False]

        with pytest.raises(InvalidState):
            async with get_db_session() as session:
                await PaymentService(session).complete(deal["buyer"], payment.id)

    @pytest.mark.asyncio
    async def test_taken_order_number_is_retried(self, deal):
        await accept(deal["buyer"], deal["offer"].id)
        async with get_db_session() as session:
            _, first_order = await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

        async with get_db_session() as session:
            second_request = await ProductRequestService(session).create(
                deal["buyer"],
                product_name="Keyboards",
                category="electronics",
                description="Mechanical keyboards for the design team",
                quantity=4,
                delivery_city="Istanbul",
                delivery_district="Besiktas",
            )
        async with get_db_session() as session:
            second_offer = await OfferLifecycle(session).submit_offer(
                deal["seller"], second_request.id, price=3000.0, delivery_time=4
            )
        await accept(deal["buyer"], second_offer.id)

        numbers = AsyncMock(side_effect=[first_order.order_number, "ORD-2099-777"])
        with patch.object(PaymentRepository, "next_order_number", new=numbers):
            async with get_db_session() as session:
                payment, order = await PaymentService(session).initiate(
                    deal["buyer"], second_offer.id
                )

        assert order.order_number == "ORD-2099-777"
        assert payment.offer_id == second_offer.id
        assert numbers.await_count == 2
        async with get_db_session() as session:
            payments = await PaymentService(session).list_payments(deal["buyer"])
        assert len(payments) == 2

    @pytest.mark.asyncio
    async def test_lists_are_per_buyer(self, deal):
        await accept(deal["buyer"], deal["offer"].id)
        async with get_db_session() as session:
            await PaymentService(session).initiate(deal["buyer"], deal["offer"].id)

        async with get_db_session() as session:
            service = PaymentService(session)
            payments = await service.list_payments(deal["buyer"])
            orders = await service.list_orders(deal["buyer"])
            seller_orders = await service.list_orders(deal["seller"])

        assert len(payments) == 1
        assert len(orders) == 1
        assert seller_orders == []


ADDRESS = {
    "title": "Office",
    "full_name": "Ayse Yilmaz",
    "phone": "+90 555 000 0000",
    "address_line": "Bagdat Caddesi 1",
    "city": "Istanbul",
    "district": "Kadikoy",
    "postal_code": "34710",
}


class TestAddressBook:
    @pytest.mark.asyncio
    async def test_first_address_becomes_default(self):
        buyer = await create_actor("buyer", "buyer")

        async with get_db_session() as session:
            address = await AddressBook(session).create(buyer, **ADDRESS)

        assert address.is_default is True

    @pytest.mark.asyncio
    async def test_set_default_moves_flag(self):
        buyer = await create_actor("buyer", "buyer")
        async with get_db_session() as session:
            first = await AddressBook(session).create(buyer, **ADDRESS)
        async with get_db_session() as session:
            second = await AddressBook(session).create(buyer, **{**ADDRESS, "title": "Home"})

        async with get_db_session() as session:
            await AddressBook(session).set_default(buyer, second.id)
        async with get_db_session() as session:
            addresses = await AddressBook(session).list(buyer)

        assert [a.id for a in addresses] == [second.id, first.id]
        assert [a.is_default for a in addresses] == [True, False]

    @pytest.mark.asyncio
    async def test_cannot_touch_other_users_address(self):
        buyer = await create_actor("buyer", "buyer")
        other = await create_actor("other", "buyer")
        async with get_db_session() as session:
            address = await AddressBook(session).create(buyer, **ADDRESS)

        with pytest.raises(Forbidden):
            async with get_db_session() as session:
                await AddressBook(session).set_default(other, address.id)
