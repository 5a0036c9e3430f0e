"""FastAPI routes for registration, sessions and onboarding."""

import re
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.serializers import CamelModel, serialize_user
from marketplace.auth import Actor, get_current_actor
from marketplace.db import get_session
from marketplace.state.accounts import AccountService

router = APIRouter(tags=["auth"])

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2)
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value


class LoginRequest(CamelModel):
    email: str
    password: str


class OnboardingLocation(CamelModel):
    city: str = Field(min_length=1)
    postal_code: Optional[str] = None


class OnboardingProfile(CamelModel):
    bio: Optional[str] = Field(default=None, max_length=150)


class OnboardingRequest(CamelModel):
    """Onboarding form: role, interests and location."""
    role: str
    categories: list[str] = Field(min_length=1)
    location: OnboardingLocation
    notifications: bool = True
    profile: OnboardingProfile = Field(default_factory=OnboardingProfile)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Create an account. The user picks a role during onboarding."""
    user = await AccountService(session).register(body.name, body.email, body.password)
    return {"message": "User created", "user": serialize_user(user)}


@router.post("/auth/login")
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Check credentials, set the session cookie and return the token."""
    from marketplace.config.settings import settings

    user, token = await AccountService(session).login(body.email, body.password)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )
    return {"user": serialize_user(user), "token": token}


@router.post("/auth/logout")
async def logout(response: Response) -> dict:
    from marketplace.config.settings import settings

    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Logged out"}


@router.post("/onboarding")
async def complete_onboarding(
    body: OnboardingRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Store role, categories and location, and mark onboarding done."""
    user = await AccountService(session).complete_onboarding(
        actor,
        role=body.role,
        categories=body.categories,
        city=body.location.city,
        postal_code=body.location.postal_code,
        notifications=body.notifications,
        bio=body.profile.bio,
    )
    return {"message": "Onboarding completed", "user": serialize_user(user)}
