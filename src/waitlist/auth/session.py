"""Opaque session tokens carried in an httpOnly cookie.

A token is issued when someone joins the waitlist and is the only
credential the frontend holds; it authorizes the stats endpoint and the
SSE stream.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta, timezone

from starlette.responses import Response

from waitlist.config import Settings

SESSION_TOKEN_BYTES = 32
_SESSION_TOKEN_RE = re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE)


def generate_session_token() -> str:
    """64 hex chars from a cryptographic random source."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def is_valid_session_token_format(token: str) -> bool:
    return bool(_SESSION_TOKEN_RE.match(token))


def session_expiration(days: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=days)


def is_session_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """Compare against UTC now. Naive datetimes (SQLite) are taken as UTC."""
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return expires_at < now


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_duration_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.environment != "development",
        samesite="strict",
        path="/",
    )
