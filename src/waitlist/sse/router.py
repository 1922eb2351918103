"""SSE endpoint streaming live referral updates to the signed-in user."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.auth.dependencies import get_current_user
from waitlist.config import Settings, get_settings
from waitlist.database import get_session
from waitlist.db.models import WaitlistUser
from waitlist.dependencies import get_registry
from waitlist.sse.registry import ConnectionRegistrationError, ConnectionRegistry
from waitlist.sse.sink import QueueSink

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/sse", tags=["SSE"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx response buffering
}


async def stream_connection(
    registry: ConnectionRegistry,
    user_id: str,
    connection_id: str,
    sink: QueueSink,
) -> AsyncGenerator[str, None]:
    """Drain the sink into the response until either side closes.

    Ends when the registry closes the sink (write failure, inactivity,
    shutdown). When the client goes away first the generator is closed and
    the connection is unregistered here.
    """
    try:
        async for chunk in sink:
            yield chunk
    finally:
        if registry.unregister(user_id, connection_id):
            logger.info("sse_client_disconnected", user_id=user_id, connection_id=connection_id)
        sink.close()


@router.get("/referral-updates")
async def referral_updates(
    request: Request,
    user: WaitlistUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    registry: ConnectionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Open an event stream of ``referral_updated``, ``tier_upgraded`` and
    ``milestone_reached`` events for the session's user.
    """
    user_id = user.id
    # The stream can stay open for hours; give the pooled DB connection back now.
    await db.close()

    request_id = request.headers.get("X-Request-Id") or f"sse-{uuid.uuid4().hex[:12]}"
    sink = QueueSink(max_backlog=settings.sse_max_backlog)
    try:
        connection_id = registry.register(user_id, sink, correlation_id=request_id)
    except ConnectionRegistrationError as e:
        logger.error("sse_registration_failed", user_id=user_id, request_id=request_id)
        raise HTTPException(status_code=500, detail="Failed to establish SSE connection") from e

    return StreamingResponse(
        stream_connection(registry, user_id, connection_id, sink),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/health")
async def sse_health(registry: ConnectionRegistry = Depends(get_registry)) -> dict[str, object]:
    """Aggregate connection counts. Unauthenticated."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stats": registry.get_stats(),
    }
