"""FastAPI routes for shipping addresses."""

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_address
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.payments import AddressBook

router = APIRouter(prefix="/addresses", tags=["addresses"])


class AddressCreate(CamelModel):
    title: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address_line: str = Field(min_length=1)
    city: str = Field(min_length=1)
    district: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    type: str = "home"
    is_default: bool = False


@router.get("")
async def list_addresses(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Default address first, then newest."""
    addresses = await AddressBook(session).list(actor)
    return {"addresses": [serialize_address(a) for a in addresses]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_address(
    body: AddressCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    address = await AddressBook(session).create(actor, **body.model_dump())
    return {"address": serialize_address(address)}


@router.post("/{address_id}/default")
async def set_default_address(
    address_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    address = await AddressBook(session).set_default(actor, address_id)
    return {"address": serialize_address(address)}
