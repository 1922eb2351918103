"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from waitlist.config import Settings, get_settings
from waitlist.database import get_session
from waitlist.db import models  # noqa: F401
from waitlist.db.base import Base
from waitlist.main import create_app


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: plain cookies over http, console logs, short SSE timers."""
    return Settings(
        environment="development",
        log_format="console",
        frontend_base_url="https://example.test",
        sse_heartbeat_interval_seconds=30,
        sse_connection_timeout_seconds=300,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service tests and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """App wired to the test database. Redis stays uninitialised, so rate limiting passes through."""
    app = create_app(settings)

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client. Lifespan is not run."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.sse_registry.close_all()


@pytest.fixture
def join(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """POST /join and return the JSON body. The session cookie lands in the client's jar."""

    async def _join(email: str, referral_code: str | None = None) -> dict:
        body: dict[str, object] = {"email": email}
        if referral_code is not None:
            body["referral_code"] = referral_code
        response = await client.post("/api/v1/waitlist/join", json=body)
        assert response.status_code == 200, response.text
        return response.json()

    return _join
