"""Tests for the offer state machine."""

import math
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from marketplace.auth.guard import Actor, Relation
from marketplace.db.models import Offer, utcnow
from marketplace.db.repository import OfferRepository, UserRepository
from marketplace.db.session import get_db_session
from marketplace.errors import ConflictError, Forbidden, InvalidState, NotFound, ValidationFailed
from marketplace.logging import log_offer_event
from marketplace.state.offers import OfferLifecycle, validate_offer_terms
from marketplace.state.requests import ProductRequestService


async def create_actor(name: str, role: str) -> Actor:
    async with get_db_session() as session:
        user = await UserRepository(session).create(
            email=f"{name}@example.com", password_hash="not-a-hash", name=name, role=role
        )
        return Actor.for_user(user)


async def create_request(buyer: Actor, **overrides) -> str:
    fields = {
        "product_name": "Office chairs",
        "category": "home-living",
        "description": "Ergonomic office chairs with armrests",
        "quantity": 20,
        "delivery_city": "Ankara",
        "delivery_district": "Cankaya",
        "max_budget": 40000.0,
    }
    fields.update(overrides)
    async with get_db_session() as session:
        product_request = await ProductRequestService(session).create(buyer, **fields)
        return product_request.id


async def submit(seller: Actor, request_id: str, price: float = 1000.0, delivery_time: int = 10):
    async with get_db_session() as session:
        return await OfferLifecycle(session).submit_offer(
            seller, request_id, price=price, delivery_time=delivery_time, message="We can do it"
        )


async def respond(actor: Actor, offer_id: str, decision: str, note=None):
    async with get_db_session() as session:
        return await OfferLifecycle(session).respond_to_offer(actor, offer_id, decision, note)


@pytest_asyncio.fixture
async def parties():
    buyer = await create_actor("buyer", "buyer")
    seller = await create_actor("seller", "seller")
    other_seller = await create_actor("seller2", "seller")
    stranger = await create_actor("stranger", "buyer")
    request_id = await create_request(buyer)
    return {
        "buyer": buyer,
        "seller": seller,
        "other_seller": other_seller,
        "stranger": stranger,
        "request_id": request_id,
    }


class TestValidateOfferTerms:
    @pytest.mark.parametrize("price", [0, -5, math.nan, math.inf, -math.inf, True])
    def test_rejects_non_positive_or_non_finite_price(self, price):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_offer_terms(price, 5)
        assert exc_info.value.details[0]["field"] == "price"

    @pytest.mark.parametrize("delivery_time", [0, -1, 2.5])
    def test_rejects_bad_delivery_time(self, delivery_time):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_offer_terms(100, delivery_time)
        assert exc_info.value.details[0]["field"] == "deliveryTime"

    def test_accepts_valid_terms(self):
        validate_offer_terms(100.5, 3)


class TestSubmitOffer:
    @pytest.mark.asyncio
    async def test_creates_pending_offer(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        assert offer.status == "pending"
        assert offer.seller_id == parties["seller"].id
        assert offer.responded_at is None

    @pytest.mark.asyncio
    async def test_second_offer_from_same_seller_conflicts(self, parties):
        await submit(parties["seller"], parties["request_id"], price=1000)

        with pytest.raises(ConflictError):
            await submit(parties["seller"], parties["request_id"], price=750, delivery_time=3)

    @pytest.mark.asyncio
    async def test_buyer_cannot_submit(self, parties):
        with pytest.raises(Forbidden):
            await submit(parties["stranger"], parties["request_id"])

    @pytest.mark.asyncio
    async def test_unknown_request(self, parties):
        with pytest.raises(NotFound):
            await submit(parties["seller"], "missing-request")

    @pytest.mark.asyncio
    async def test_deadline_passed(self, parties):
        request_id = await create_request(
            parties["buyer"], offer_deadline=utcnow() - timedelta(days=1)
        )

        with pytest.raises(InvalidState):
            await submit(parties["seller"], request_id)

    @pytest.mark.asyncio
    async def test_closed_request_rejects_offers(self, parties):
        async with get_db_session() as session:
            await ProductRequestService(session).cancel(parties["buyer"], parties["request_id"])

        with pytest.raises(InvalidState):
            await submit(parties["seller"], parties["request_id"])


class TestRespondToOffer:
    @pytest.mark.asyncio
    async def test_accept_records_response(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        accepted = await respond(parties["buyer"], offer.id, "accepted", "Deal")

        assert accepted.status == "accepted"
        assert accepted.buyer_response == "Deal"
        assert accepted.responded_at is not None
        assert accepted.responded_at >= accepted.created_at
        assert accepted.product_request.status == "completed"

    @pytest.mark.asyncio
    async def test_reject_keeps_request_open(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        rejected = await respond(parties["buyer"], offer.id, "rejected")

        assert rejected.status == "rejected"
        assert rejected.product_request.status == "active"

    @pytest.mark.asyncio
    async def test_seller_cannot_respond(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        with pytest.raises(Forbidden):
            await respond(parties["seller"], offer.id, "accepted")

    @pytest.mark.asyncio
    async def test_unrelated_buyer_cannot_respond(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        with pytest.raises(Forbidden):
            await respond(parties["stranger"], offer.id, "accepted")

    @pytest.mark.asyncio
    async def test_invalid_decision(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        with pytest.raises(ValidationFailed):
            await respond(parties["buyer"], offer.id, "withdrawn")

    @pytest.mark.asyncio
    async def test_decided_offer_cannot_be_answered_again(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])
        await respond(parties["buyer"], offer.id, "rejected")

        with pytest.raises(InvalidState):
            await respond(parties["buyer"], offer.id, "accepted")

    @pytest.mark.asyncio
    async def test_only_one_offer_per_request_can_be_accepted(self, parties):
        first = await submit(parties["seller"], parties["request_id"])
        second = await submit(parties["other_seller"], parties["request_id"], price=900)
        await respond(parties["buyer"], first.id, "accepted")

        with pytest.raises(InvalidState) as exc_info:
            await respond(parties["buyer"], second.id, "accepted")
        assert exc_info.value.message == "request already fulfilled"

        async with get_db_session() as session:
            offer, _ = await OfferLifecycle(session).get_offer(parties["buyer"], second.id)
            assert offer.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_offer(self, parties):
        with pytest.raises(NotFound):
            await respond(parties["buyer"], "missing-offer", "accepted")


class TestWithdrawOffer:
    @pytest.mark.asyncio
    async def test_seller_withdraws_pending_offer(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        async with get_db_session() as session:
            withdrawn = await OfferLifecycle(session).withdraw_offer(parties["seller"], offer.id)

        assert withdrawn.status == "withdrawn"

    @pytest.mark.asyncio
    async def test_buyer_cannot_withdraw(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        with pytest.raises(Forbidden):
            async with get_db_session() as session:
                await OfferLifecycle(session).withdraw_offer(parties["buyer"], offer.id)

    @pytest.mark.asyncio
    async def test_accepted_offer_cannot_be_withdrawn(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])
        await respond(parties["buyer"], offer.id, "accepted")

        with pytest.raises(InvalidState):
            async with get_db_session() as session:
                await OfferLifecycle(session).withdraw_offer(parties["seller"], offer.id)


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_lists_by_role(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        async with get_db_session() as session:
            lifecycle = OfferLifecycle(session)
            sent = await lifecycle.list_offers(parties["seller"], "seller")
            received = await lifecycle.list_offers(parties["buyer"], "buyer")
            unrelated = await lifecycle.list_offers(parties["stranger"], "buyer")

        assert [o.id for o in sent] == [offer.id]
        assert [o.id for o in received] == [offer.id]
        assert unrelated == []

    @pytest.mark.asyncio
    async def test_unknown_role(self, parties):
        with pytest.raises(ValidationFailed):
            async with get_db_session() as session:
                await OfferLifecycle(session).list_offers(parties["seller"], "admin")

    @pytest.mark.asyncio
    async def test_get_offer_reports_relation(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        async with get_db_session() as session:
            lifecycle = OfferLifecycle(session)
            _, buyer_relation = await lifecycle.get_offer(parties["buyer"], offer.id)
            _, seller_relation = await lifecycle.get_offer(parties["seller"], offer.id)

        assert buyer_relation is Relation.BUYER
        assert seller_relation is Relation.SELLER

    @pytest.mark.asyncio
    async def test_get_offer_forbidden_for_stranger(self, parties):
        offer = await submit(parties["seller"], parties["request_id"])

        with pytest.raises(Forbidden):
            async with get_db_session() as session:
                await OfferLifecycle(session).get_offer(parties["stranger"], offer.id)


class TestOfferUniqueIndex:
    """Storage-level guarantee behind one offer per seller and request."""

    @pytest.mark.asyncio
    async def test_duplicate_insert_conflicts(self, parties):
        fields = {
            "product_request_id": parties["request_id"],
            "seller_id": parties["seller"].id,
            "delivery_time": 5,
        }
        async with get_db_session() as session:
            await OfferRepository(session).create(price=900.0, **fields)

        # Bypasses the lifecycle's pre-check, as a concurrent writer would
        with pytest.raises(ConflictError):
            async with get_db_session() as session:
                await OfferRepository(session).create(price=800.0, **fields)

        async with get_db_session() as session:
            count = await session.scalar(
                select(func.count(Offer.id)).where(
                    Offer.product_request_id == parties["request_id"]
                )
            )
        assert count == 1

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_not_conflicts(self, parties):
        with pytest.raises(IntegrityError):
            async with get_db_session() as session:
                await OfferRepository(session).create(
                    product_request_id=parties["request_id"],
                    seller_id=parties["seller"].id,
                    price=None,
                    delivery_time=5,
                )


class TestOfferEventLog:
    def test_log_offer_event(self):
        log_offer_event(
            "submitted",
            offer_id="offer-1",
            product_request_id="request-1",
            actor_id="seller-1",
            status="pending",
            price=100.0,
        )
