"""Waitlist router: all /api/v1/waitlist/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.auth.dependencies import get_current_user
from waitlist.auth.session import set_session_cookie
from waitlist.config import Settings, get_settings
from waitlist.database import get_session
from waitlist.db.models import WaitlistUser
from waitlist.dependencies import get_dispatcher
from waitlist.notifications.dispatcher import NotificationDispatcher
from waitlist.referrals.codes import is_valid_referral_code_format
from waitlist.referrals.links import build_referral_link
from waitlist.referrals.service import count_referrals
from waitlist.tiers import (
    calculate_tier,
    display_count,
    next_tier_message,
    next_tier_threshold,
    progress_percentage,
    remaining_referrals,
    tier_info,
    tier_stats,
)
from waitlist.users.schemas import (
    JoinRequest,
    JoinResponse,
    ReferralCodeValidationResponse,
    ReferralStatsResponse,
    StatsResponse,
    TierStatsResponse,
    WaitlistUserResponse,
)
from waitlist.users.service import find_user_by_referral_code, join_waitlist, mask_email

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/waitlist", tags=["Waitlist"])


def _user_response(user: WaitlistUser, settings: Settings) -> WaitlistUserResponse:
    return WaitlistUserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        marketing_opt_in=user.marketing_opt_in,
        additional_remarks=user.additional_remarks,
        referral_code=user.referral_code,
        referral_link=build_referral_link(user.referral_code, settings.frontend_base_url),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _referral_stats(count: int) -> ReferralStatsResponse:
    tier = calculate_tier(count)
    info = tier_info(tier)
    next_at = next_tier_threshold(count)
    return ReferralStatsResponse(
        actual_referral_count=count,
        display_referral_count=display_count(count),
        tier=tier.value,
        tier_label=info["label"],
        tier_description=info["description"],
        next_tier_at=next_at,
        next_tier_label=tier_info(calculate_tier(next_at))["label"] if next_at is not None else None,
        remaining_referrals=remaining_referrals(count),
        progress_percentage=progress_percentage(count),
        next_tier_message=next_tier_message(count),
    )


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


@router.post("/join", response_model=JoinResponse)
async def join(
    body: JoinRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
) -> JoinResponse:
    """Join the waitlist, optionally with a referral code. Sets the session cookie."""
    request_id = request.headers.get("X-Request-Id")
    result = await join_waitlist(db, dispatcher, body, settings, request_id=request_id)
    user = result.user

    count = await count_referrals(db, user.id)
    set_session_cookie(response, user.session_token, settings)

    logger.info(
        "waitlist_join_completed",
        user_id=user.id,
        new_referral_created=result.new_referral_created,
        referral_count=count,
        request_id=request_id,
    )
    return JoinResponse(
        user=_user_response(user, settings),
        referral_stats=_referral_stats(count),
        new_referral_created=result.new_referral_created,
        message=result.message,
    )


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@router.get("/me/stats", response_model=StatsResponse)
async def my_stats(
    user: WaitlistUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> StatsResponse:
    """Referral count, tier and progress for the session's user."""
    count = await count_referrals(db, user.id)
    return StatsResponse(
        user=_user_response(user, settings),
        referral_stats=_referral_stats(count),
        session_expires_at=user.session_expires_at,
    )


# ---------------------------------------------------------------------------
# Referral codes and tiers
# ---------------------------------------------------------------------------


@router.get("/referral-codes/{code}", response_model=ReferralCodeValidationResponse)
async def validate_referral_code(
    code: str,
    db: AsyncSession = Depends(get_session),
) -> ReferralCodeValidationResponse:
    """Check a code before signup so the form can show "valid code"."""
    if not is_valid_referral_code_format(code):
        return ReferralCodeValidationResponse(valid=False, message="Invalid referral code format")

    referrer = await find_user_by_referral_code(db, code)
    if referrer is None:
        return ReferralCodeValidationResponse(valid=False, message="Referral code not found")
    return ReferralCodeValidationResponse(
        valid=True,
        referrer_email=mask_email(referrer.email),
        message="Referral code is valid",
    )


@router.get("/tiers", response_model=TierStatsResponse)
async def tiers() -> dict:
    return tier_stats()
