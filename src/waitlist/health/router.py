"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.config import Settings, get_settings
from waitlist.database import get_session
from waitlist.dependencies import get_registry
from waitlist.redis_client import redis_status
from waitlist.sse.registry import ConnectionRegistry

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    registry: ConnectionRegistry = Depends(get_registry),  # noqa: B008
) -> JSONResponse:
    """Ready once the database answers.

    Redis only backs rate limiting, so a missing or failing Redis reports
    ``degraded`` but keeps the instance in rotation. A dead database is a 503.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        database = f"error: {exc}"

    redis = await redis_status()
    if database != "ok":
        status, status_code = "unavailable", 503
    elif redis != "ok":
        status, status_code = "degraded", 200
    else:
        status, status_code = "ready", 200

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status,
            "checks": {"database": database, "redis": redis},
            "sse": registry.get_stats(),
        },
    )


@router.get("/version")
async def version(settings: Settings = Depends(get_settings)) -> dict[str, str]:  # noqa: B008
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
