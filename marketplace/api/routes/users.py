"""FastAPI routes for profiles and user administration."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_user
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.accounts import AccountService

router = APIRouter(tags=["users"])


class ProfileUpdate(CamelModel):
    """Profile fields; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=2)
    city: Optional[str] = None
    postal_code: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=150)
    categories: Optional[list[str]] = None
    notifications: Optional[bool] = None


@router.get("/user/me")
async def get_me(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    user, request_count, payment_count = await AccountService(session).profile(actor)
    data = serialize_user(user)
    data["requestCount"] = request_count
    data["paymentCount"] = payment_count
    return {"user": data}


@router.patch("/user/profile")
async def update_profile(
    body: ProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    user = await AccountService(session).update_profile(actor, **body.model_dump(exclude_unset=True))
    return {"message": "Profile updated", "user": serialize_user(user)}


@router.get("/admin/users")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Paginated user list with per-user request and offer counts.

    Args:
        page: 1-based page number
        limit: Page size
        search: Matches name or email, case-insensitive
        role: Only users with this role
    """
    rows, total = await AccountService(session).list_users(
        actor, page=page, limit=limit, search=search, role=role
    )
    users = []
    for user, request_count, offer_count in rows:
        data = serialize_user(user)
        data["requestCount"] = request_count
        data["offerCount"] = offer_count
        users.append(data)

    return {
        "users": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }
