"""Waitlist user lookups and the join flow."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.auth.session import generate_session_token, is_session_expired, session_expiration
from waitlist.config import Settings
from waitlist.db.models import WaitlistUser
from waitlist.exceptions import BadRequestError, ConflictError, NotFoundError, WaitlistError
from waitlist.notifications.dispatcher import NotificationDispatcher
from waitlist.referrals.codes import generate_unique_referral_code
from waitlist.referrals.service import credit_referral, find_referral
from waitlist.users.schemas import JoinRequest

logger = structlog.get_logger()


def mask_email(email: str) -> str:
    """``jane.doe@example.com`` -> ``ja***@example.com``."""
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}" if domain else f"{local[:2]}***"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def find_user_by_email(db: AsyncSession, email: str) -> WaitlistUser | None:
    result = await db.execute(select(WaitlistUser).where(WaitlistUser.email == email.lower()))
    return result.scalar_one_or_none()


async def find_user_by_referral_code(db: AsyncSession, code: str) -> WaitlistUser | None:
    result = await db.execute(select(WaitlistUser).where(WaitlistUser.referral_code == code))
    return result.scalar_one_or_none()


async def find_user_by_session_token(db: AsyncSession, token: str) -> WaitlistUser | None:
    result = await db.execute(select(WaitlistUser).where(WaitlistUser.session_token == token))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_user(db: AsyncSession, body: JoinRequest, settings: Settings) -> WaitlistUser:
    """Insert a waitlist user with a fresh referral code and session, and commit.

    Raises ConflictError if the email is already on the waitlist.
    """
    user = WaitlistUser(
        email=body.email,
        username=body.username,
        first_name=body.first_name,
        last_name=body.last_name,
        phone_number=body.phone_number,
        marketing_opt_in=body.marketing_opt_in,
        additional_remarks=body.additional_remarks,
        referral_code=await generate_unique_referral_code(db),
        session_token=generate_session_token(),
        session_expires_at=session_expiration(settings.session_duration_days),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Email already joined waitlist") from e
    return user


async def refresh_session(db: AsyncSession, user: WaitlistUser, settings: Settings) -> None:
    """Issue a new session token when the current one has expired."""
    if not is_session_expired(user.session_expires_at):
        return
    user.session_token = generate_session_token()
    user.session_expires_at = session_expiration(settings.session_duration_days)
    await db.commit()
    logger.info("session_refreshed", user_id=user.id)


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


@dataclass
class JoinResult:
    user: WaitlistUser
    new_referral_created: bool
    message: str


async def join_waitlist(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    body: JoinRequest,
    settings: Settings,
    request_id: str | None = None,
) -> JoinResult:
    """Add someone to the waitlist, crediting their referrer if a code was given.

    For a returning email, referral problems are reported to the caller
    (unknown code, self-referral, duplicate). For a new signup they are
    logged and ignored so a bad code never blocks joining.
    """
    existing = await find_user_by_email(db, body.email)

    if existing is not None:
        logger.info("waitlist_existing_user", user_id=existing.id, request_id=request_id)
        await refresh_session(db, existing, settings)
        if not body.referral_code:
            return JoinResult(existing, False, "User already exists")

        referrer = await find_user_by_referral_code(db, body.referral_code)
        if referrer is None:
            raise NotFoundError("Referral code not found")
        if referrer.id == existing.id:
            raise BadRequestError("Cannot refer yourself")
        if await find_referral(db, referrer.id, existing.id) is not None:
            raise ConflictError("You have already been referred by this user")

        await credit_referral(db, dispatcher, referrer.id, existing.id, correlation_id=request_id)
        return JoinResult(existing, True, "Referral credited to existing user")

    user = await create_user(db, body, settings)
    logger.info(
        "waitlist_joined",
        user_id=user.id,
        email=mask_email(user.email),
        has_referral=bool(body.referral_code),
        marketing_opt_in=user.marketing_opt_in,
        request_id=request_id,
    )
    if not body.referral_code:
        return JoinResult(user, False, "Successfully joined waitlist")

    referrer = await find_user_by_referral_code(db, body.referral_code)
    if referrer is None:
        logger.warning("referral_code_not_found", referral_code=body.referral_code, user_id=user.id)
        return JoinResult(user, False, "Successfully joined waitlist")

    try:
        await credit_referral(db, dispatcher, referrer.id, user.id, correlation_id=request_id)
    except (WaitlistError, SQLAlchemyError) as e:
        # rollback expires loaded attributes; reload before the caller reads them
        await db.rollback()
        await db.refresh(user)
        logger.error("referral_for_new_user_failed", user_id=user.id, error=str(e), request_id=request_id)
        return JoinResult(user, False, "Successfully joined waitlist")

    return JoinResult(user, True, "Successfully joined waitlist with referral")
