"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from waitlist.config import Settings, get_settings
from waitlist.database import close_db, init_db
from waitlist.health.router import router as health_router
from waitlist.middleware import setup_middleware
from waitlist.notifications.dispatcher import NotificationDispatcher
from waitlist.redis_client import close_redis, init_redis
from waitlist.sse.registry import ConnectionRegistry
from waitlist.sse.router import router as sse_router
from waitlist.users.router import router as waitlist_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url, max_connections=settings.redis_max_connections)
    logger.info("app_started", version=settings.app_version, environment=settings.environment)

    yield

    # Close open streams before the pools they were opened against
    registry: ConnectionRegistry = app.state.sse_registry
    closed = registry.total_connections()
    registry.close_all()
    logger.info("sse_connections_closed", count=closed)

    await close_db()
    await close_redis()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Waitlist Referral API",
        description="Waitlist signups, referral tracking and live referral notifications",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    registry = ConnectionRegistry(
        heartbeat_interval=settings.sse_heartbeat_interval_seconds,
        inactivity_timeout=settings.sse_connection_timeout_seconds,
    )
    app.state.sse_registry = registry
    app.state.notification_dispatcher = NotificationDispatcher(registry)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(waitlist_router)
    app.include_router(sse_router)

    return app


app = create_app()
