"""FastAPI routes for product requests."""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, iso, serialize_request
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.requests import ProductRequestService

router = APIRouter(prefix="/product-requests", tags=["product-requests"])


class ProductRequestCreate(CamelModel):
    """A buyer's request for offers."""
    product_name: str = Field(min_length=3)
    category: str = Field(min_length=1)
    description: str = Field(min_length=10)
    quantity: int = Field(ge=1)
    max_budget: Optional[float] = Field(default=None, gt=0)
    delivery_city: str = Field(min_length=1)
    delivery_district: str = Field(min_length=1)
    offer_deadline: Optional[datetime] = None
    example_image_url: Optional[str] = None
    brand_model: Optional[str] = None
    dynamic_fields: Optional[dict[str, Any]] = None

    @field_validator("offer_deadline")
    @classmethod
    def naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Stored as naive UTC
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_request(
    body: ProductRequestCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    product_request = await ProductRequestService(session).create(actor, **body.model_dump())
    return {"productRequest": serialize_request(product_request)}


@router.get("")
async def list_my_requests(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """The actor's own requests, newest first."""
    requests = await ProductRequestService(session).list_mine(actor)
    return {"productRequests": [serialize_request(r, with_offer_count=True) for r in requests]}


@router.get("/explore")
async def explore_requests(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """All active requests with their owner's name."""
    requests = await ProductRequestService(session).explore()
    return {
        "productRequests": [
            serialize_request(r, with_owner=True, with_offer_count=True) for r in requests
        ]
    }


@router.get("/seller")
async def seller_requests(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Active requests annotated with the acting seller's own offer."""
    views = await ProductRequestService(session).seller_view(actor)

    results = []
    for view in views:
        data = serialize_request(view.request, with_owner=True, with_offer_count=True)
        data["hasOffer"] = view.has_offer
        data["hasNegotiation"] = view.has_negotiation
        data["myOffer"] = None
        if view.my_offer is not None:
            data["myOffer"] = {
                "id": view.my_offer.id,
                "status": view.my_offer.status,
                "price": view.my_offer.price,
                "createdAt": iso(view.my_offer.created_at),
            }
        results.append(data)

    return {"productRequests": results}


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    product_request = await ProductRequestService(session).cancel(actor, request_id)
    return {"message": "Request cancelled", "productRequest": serialize_request(product_request)}
