"""Pytest configuration and shared fixtures."""

import asyncio
from pathlib import Path
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def init_test_database(tmp_path: Path):
    """Point the engine at a fresh SQLite file and create all tables."""
    from marketplace.config import settings as settings_module
    from marketplace.db import models  # noqa: F401 - Import to register models
    from marketplace.db.base import init_db, reset_engine

    reset_engine()

    # Ensure we use SQLite for tests (not PostgreSQL)
    original_database_url = settings_module.settings.database_url
    settings_module.settings.database_url = None

    test_db_path = tmp_path / "test.db"
    original_database_path = settings_module.settings.database_path
    settings_module.settings.database_path = test_db_path

    asyncio.run(init_db(test_db_path))
    yield

    reset_engine()
    settings_module.settings.database_url = original_database_url
    settings_module.settings.database_path = original_database_path


@pytest.fixture(autouse=True)
def fresh_cache_manager():
    """Give every test an empty comparison cache."""
    from marketplace.cache import reset_cache_manager

    reset_cache_manager()
    yield
    reset_cache_manager()


@pytest.fixture
def no_ai_key():
    """Run with the AI provider unconfigured."""
    from marketplace.config import settings as settings_module

    original = settings_module.settings.openai_api_key
    settings_module.settings.openai_api_key = None
    yield
    settings_module.settings.openai_api_key = original


@pytest.fixture
def client() -> TestClient:
    from marketplace.main import app

    return TestClient(app)


@pytest.fixture
def make_user(client: TestClient) -> Callable[..., dict[str, str]]:
    """Register, log in and onboard a user through the API.

    Returns a callable giving the Authorization headers for the new user.
    """

    def _make(name: str, role: Optional[str] = "buyer", email: Optional[str] = None) -> dict[str, str]:
        email = email or f"{name.lower()}@example.com"
        response = client.post(
            "/api/register", json={"name": name, "email": email, "password": PASSWORD}
        )
        assert response.status_code == 201, response.text

        response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
        assert response.status_code == 200, response.text
        headers = {"Authorization": f"Bearer {response.json()['token']}"}
        # Requests must authenticate through the header, not the last login's cookie
        client.cookies.clear()

        if role:
            response = client.post(
                "/api/onboarding",
                json={
                    "role": role,
                    "categories": ["electronics"],
                    "location": {"city": "Istanbul", "postalCode": "34000"},
                },
                headers=headers,
            )
            assert response.status_code == 200, response.text
        return headers

    return _make


@pytest.fixture
def request_payload() -> dict:
    return {
        "productName": "ThinkPad T14 laptops",
        "category": "electronics",
        "description": "Business laptops with 16GB RAM and a 3 year warranty",
        "quantity": 10,
        "maxBudget": 15000,
        "deliveryCity": "Istanbul",
        "deliveryDistrict": "Kadikoy",
    }
