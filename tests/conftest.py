"""Pytest configuration and fixtures for API tests."""
import os
import tempfile

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="shortdrop-test-")
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["INITIAL_ADMIN_USERNAME"] = "admin"
os.environ["BASE_URL"] = "http://test"

import time

import pytest
from httpx import ASGITransport, AsyncClient

from drop.models import Base, User
from drop.models.base import async_session_factory, engine
from web.api.main import app
from web.auth import hash_password, login_limiter, session_revalidator


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables for each test (ASGI lifespan doesn't run with httpx)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    login_limiter.reset()
    session_revalidator.clock = time.time
    yield
    session_revalidator.clock = time.time


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    """Login as admin and return Authorization headers for protected endpoints."""
    r = await client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "testpass123"},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    token = r.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user():
    """Create a user directly in the database."""

    async def _make(username: str, role: str = "uploader", password: str = "password123") -> User:
        async with async_session_factory() as session:
            user = User(username=username, password_hash=hash_password(password), role=role)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture
def login(client):
    """Log in and return Authorization headers."""

    async def _login(username: str, password: str = "password123") -> dict:
        r = await client.post("/api/auth/login", json={"username": username, "password": password})
        assert r.status_code == 200, f"Login failed: {r.text}"
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login


@pytest.fixture
async def uploader_headers(make_user, login):
    await make_user("uploader1", role="uploader")
    return await login("uploader1")


@pytest.fixture
async def guest_headers(make_user, login):
    await make_user("guest1", role="guest")
    return await login("guest1")
