"""Referral persistence and the referral credit workflow.

Crediting a referral is: validate, persist the edge, commit, then hand the
before/after count to the notification dispatcher. The commit comes first
so a notification never announces a referral that was rolled back, and a
notification problem never undoes a committed referral.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.db.models import Referral
from waitlist.exceptions import BadRequestError, ConflictError
from waitlist.notifications.dispatcher import NotificationDispatcher
from waitlist.tiers import calculate_tier, is_upgrade

logger = structlog.get_logger()


async def count_referrals(db: AsyncSession, user_id: str) -> int:
    """Confirmed referrals made by a user."""
    result = await db.execute(
        select(func.count()).select_from(Referral).where(Referral.referrer_id == user_id)
    )
    return result.scalar_one()


async def find_referral(db: AsyncSession, referrer_id: str, referee_id: str) -> Referral | None:
    result = await db.execute(
        select(Referral).where(
            Referral.referrer_id == referrer_id,
            Referral.referee_id == referee_id,
        )
    )
    return result.scalar_one_or_none()


async def list_referrals(db: AsyncSession, user_id: str) -> list[Referral]:
    result = await db.execute(
        select(Referral).where(Referral.referrer_id == user_id).order_by(Referral.created_at)
    )
    return list(result.scalars().all())


async def create_referral_edge(db: AsyncSession, referrer_id: str, referee_id: str) -> Referral:
    """Insert a referrer -> referee edge (flushed, not committed).

    Raises BadRequestError for a self-referral and ConflictError when the
    edge exists. The unique constraint backs the existence check, so two
    concurrent credits for the same pair cannot both succeed.
    """
    if referrer_id == referee_id:
        raise BadRequestError("Cannot refer yourself")

    if await find_referral(db, referrer_id, referee_id) is not None:
        raise ConflictError("This referral relationship already exists")

    referral = Referral(referrer_id=referrer_id, referee_id=referee_id)
    db.add(referral)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("This referral relationship already exists") from e
    return referral


async def credit_referral(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    referrer_id: str,
    referee_id: str,
    correlation_id: str | None = None,
) -> Referral:
    """Persist a referral and push live updates to the referrer.

    Validation and persistence errors propagate. Notification errors are
    logged and swallowed.
    """
    correlation_id = correlation_id or f"referral-{uuid.uuid4().hex[:12]}"
    log = logger.bind(referrer_id=referrer_id, referee_id=referee_id, correlation_id=correlation_id)

    previous_count = await count_referrals(db, referrer_id)
    referral = await create_referral_edge(db, referrer_id, referee_id)
    await db.commit()
    new_count = await count_referrals(db, referrer_id)

    log.info(
        "referral_credited",
        referral_id=referral.id,
        previous_count=previous_count,
        new_count=new_count,
        tier=calculate_tier(new_count).value,
        tier_upgraded=is_upgrade(previous_count, new_count),
    )

    try:
        dispatcher.notify_referral_change(referrer_id, previous_count, new_count)
    except Exception:
        log.warning("referral_notification_failed", exc_info=True)

    return referral
