"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (StaticPool keeps the
   single connection alive, so every session sees the same database).
2. get_db is overridden to hand each request its own session from that
   engine, just like production.
3. The notifier and the Google client are overridden with fakes, so tests
   can assert on sent mail and drive the OAuth callback.

Environment variables are set before taskmate is imported, because
settings are read once at import time.
"""

import os

os.environ.setdefault("TASKMATE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASKMATE_JWT_SECRET", "test-secret")
os.environ.setdefault("TASKMATE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TASKMATE_CLIENT_URL", "http://frontend.test")

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskmate.auth.oauth import get_oauth_client
from taskmate.db.engine import get_db
from taskmate.db.models import Base
from taskmate.main import app
from taskmate.services.notifier import AssignmentNotifier, get_notifier

from .fakes import FakeGoogle, RecordingTransport


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Direct session for arranging data and inspecting results."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def transport():
    return RecordingTransport()


@pytest_asyncio.fixture()
async def notifier(transport):
    notifier = AssignmentNotifier(transport, timeout=0.5)
    yield notifier
    await notifier.drain()


@pytest_asyncio.fixture()
async def google():
    return FakeGoogle()


@pytest_asyncio.fixture()
async def client(session_factory, notifier, google):
    """HTTP client with database, notifier and Google overridden.

    Auth is NOT mocked: tests register/login through the API and send
    real bearer tokens, so the session guard runs on every request.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_oauth_client] = lambda: google

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def make_user(client):
    """Register a user through the API.

    Returns a dict with id, name, email, password, token and ready-made
    Authorization headers.
    """

    async def _make(name: str = "User", email: str = None, password: str = "password_123"):
        email = email or f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}@example.com"
        r = await client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert r.status_code == 200, r.text
        body = r.json()
        return {
            **body["user"],
            "password": password,
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _make
