"""Product request operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.guard import Actor, Capability, require_capability
from marketplace.db.models import Offer, ProductRequest
from marketplace.db.repository import ProductRequestRepository
from marketplace.errors import Forbidden, InvalidState, NotFound
from marketplace.state.models import REQUEST_TRANSITIONS, RequestStatus, ensure_transition

logger = structlog.get_logger()


@dataclass
class SellerRequestView:
    """An open request as seen by one seller."""

    request: ProductRequest
    my_offer: Optional[Offer]
    has_negotiation: bool

    @property
    def has_offer(self) -> bool:
        return self.my_offer is not None


class ProductRequestService:
    """Create, list and cancel product requests."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.requests = ProductRequestRepository(session)

    async def create(
        self,
        actor: Actor,
        product_name: str,
        category: str,
        description: str,
        quantity: int,
        delivery_city: str,
        delivery_district: str,
        max_budget: Optional[float] = None,
        offer_deadline: Optional[datetime] = None,
        example_image_url: Optional[str] = None,
        brand_model: Optional[str] = None,
        dynamic_fields: Optional[dict[str, Any]] = None,
    ) -> ProductRequest:
        """Post a new request on behalf of a buyer."""
        require_capability(actor, Capability.CREATE_REQUEST, "Only buyers can create requests")

        product_request = await self.requests.create(
            actor.id,
            product_name=product_name.strip(),
            category=category,
            description=description.strip(),
            quantity=quantity,
            max_budget=max_budget,
            delivery_city=delivery_city,
            delivery_district=delivery_district,
            offer_deadline=offer_deadline,
            example_image_url=example_image_url,
            brand_model=brand_model,
            dynamic_fields=dynamic_fields,
            status=RequestStatus.ACTIVE.value,
        )
        await self.session.commit()
        return product_request

    async def list_mine(self, actor: Actor) -> list[ProductRequest]:
        return await self.requests.list_for_owner(actor.id)

    async def explore(self) -> list[ProductRequest]:
        return await self.requests.list_active()

    async def seller_view(self, actor: Actor) -> list[SellerRequestView]:
        """Active requests annotated with the seller's own offer, if any."""
        active = await self.requests.list_active()

        views = []
        my_offer_ids = []
        for product_request in active:
            my_offer = next((o for o in product_request.offers if o.seller_id == actor.id), None)
            if my_offer is not None:
                my_offer_ids.append(my_offer.id)
            views.append(SellerRequestView(product_request, my_offer, False))

        negotiated = await self.requests.offer_ids_with_negotiations(my_offer_ids)
        for view in views:
            view.has_negotiation = view.my_offer is not None and view.my_offer.id in negotiated
        return views

    async def cancel(self, actor: Actor, request_id: str) -> ProductRequest:
        """Cancel an active request. Owner only."""
        product_request = await self.requests.get_by_id(request_id)
        if product_request is None:
            raise NotFound("Product request not found")
        if product_request.user_id != actor.id:
            raise Forbidden("You can only cancel your own requests")

        ensure_transition(
            REQUEST_TRANSITIONS,
            product_request.status,
            RequestStatus.CANCELLED.value,
            subject="request",
        )
        cancelled = await self.requests.set_status_if(
            product_request.id,
            expected=RequestStatus.ACTIVE.value,
            status=RequestStatus.CANCELLED.value,
        )
        if not cancelled:
            await self.session.rollback()
            raise InvalidState("Request is no longer active")

        await self.session.commit()
        logger.info("Cancelled product request", request_id=product_request.id)
        return product_request
