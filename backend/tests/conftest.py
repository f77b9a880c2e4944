"""Shared fixtures: in-memory SQLite, TestClient, fake Clerk client."""

import os

# Settings are read at import time, so the environment must be set before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("CLERK_SECRET_KEY", None)
os.environ.pop("CLERK_WEBHOOK_SECRET", None)

from typing import Any, Callable
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_clerk_client
from app.core.database import Base, SessionLocal, engine
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.models.user import User, UserRole


@pytest.fixture
def external_token() -> str:
    """Long enough to be routed to the Clerk verifier first."""
    return "clerk." + "x" * 150


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    app.dependency_overrides.pop(get_clerk_client, None)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clerk_profile() -> dict[str, Any]:
    """Clerk user payload as returned by GET /users/{id} and sent in webhooks."""
    return {
        "id": "user_ext_1",
        "first_name": "Ana",
        "last_name": "Gomez",
        "username": "anagomez",
        "primary_email_address_id": "idn_1",
        "email_addresses": [
            {"id": "idn_1", "email_address": "ana@cafe.com", "verification": {"status": "verified"}},
        ],
    }


@pytest.fixture
def fake_clerk(clerk_profile) -> Mock:
    """Stand-in for ClerkClient that accepts EXTERNAL_TOKEN as user_ext_1."""
    clerk = Mock()
    clerk.verify_session_token = AsyncMock(return_value={"sub": clerk_profile["id"]})
    clerk.get_user = AsyncMock(return_value=clerk_profile)
    return clerk


@pytest.fixture
def clerk_client(client, fake_clerk) -> TestClient:
    """TestClient whose requests see fake_clerk as the configured Clerk client."""
    app.dependency_overrides[get_clerk_client] = lambda: fake_clerk
    return client


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    def _make_user(
        email: str = "merchant@cafe.com",
        password: str = "secret123",
        name: str = "Cafe Merchant",
        external_id: str | None = None,
        is_active: bool = True,
        role: UserRole = UserRole.MERCHANT,
    ) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=get_password_hash(password) if password else "",
            external_id=external_id,
            is_active=is_active,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}

    return _auth_headers
