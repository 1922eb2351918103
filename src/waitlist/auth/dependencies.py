"""FastAPI authentication dependencies."""

from __future__ import annotations

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.auth.session import is_session_expired, is_valid_session_token_format
from waitlist.config import Settings, get_settings
from waitlist.database import get_session
from waitlist.db.models import WaitlistUser
from waitlist.exceptions import UnauthorizedError
from waitlist.users.service import find_user_by_session_token

logger = structlog.get_logger()


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WaitlistUser:
    """Resolve the session cookie to a waitlist user.

    Raises 401 when the cookie is missing, unknown or expired.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        logger.warning("session_missing", path=request.url.path)
        raise UnauthorizedError("Session token required. Please join waitlist first.")

    user = None
    if is_valid_session_token_format(token):
        user = await find_user_by_session_token(db, token)
    if user is None:
        logger.warning("session_invalid", path=request.url.path)
        raise UnauthorizedError("Invalid or expired session. Please join waitlist again.")

    if is_session_expired(user.session_expires_at):
        logger.warning("session_expired", path=request.url.path, user_id=user.id)
        raise UnauthorizedError("Session expired. Please join waitlist again.")

    return user
