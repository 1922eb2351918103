"""Turn a referral count change into real-time notification events.

For one change the events are always sent in this order, so a client
handling them in arrival order sees the new count before any banner:

1. ``referral_updated`` (always)
2. ``tier_upgraded`` (when the count crossed into a higher tier)
3. ``milestone_reached`` (when a milestone was crossed)

Delivery is best effort. The persisted referral is the source of truth,
so nothing here ever raises back into the referral write path.
"""

from __future__ import annotations

import structlog

from waitlist.sse.events import MilestoneReached, NotificationEvent, ReferralUpdated, TierUpgraded
from waitlist.sse.registry import ConnectionRegistry
from waitlist.tiers import (
    calculate_tier,
    display_count,
    is_upgrade,
    milestone_reached,
    tier_info,
    tier_upgrade_message,
)

logger = structlog.get_logger()


def build_referral_events(previous_count: int, new_count: int) -> list[NotificationEvent]:
    """Derive the ordered events for a count change. Pure."""
    new_tier = calculate_tier(new_count)
    events: list[NotificationEvent] = [
        ReferralUpdated(
            actual_count=new_count,
            display_count=display_count(new_count),
            tier=new_tier.value,
            previous_count=previous_count,
        )
    ]

    if is_upgrade(previous_count, new_count):
        events.append(
            TierUpgraded(
                previous_tier=calculate_tier(previous_count).value,
                new_tier=new_tier.value,
                label=tier_info(new_tier)["label"],
                count=new_count,
                message=tier_upgrade_message(new_tier),
            )
        )

    milestone = milestone_reached(previous_count, new_count)
    if milestone is not None:
        events.append(
            MilestoneReached(
                milestone=milestone,
                total_referrals=new_count,
                message=f"Amazing! You've reached {milestone} referrals!",
            )
        )

    return events


class NotificationDispatcher:
    """Sends referral change events to a user's live connections."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def notify_referral_change(self, user_id: str, previous_count: int, new_count: int) -> list[NotificationEvent]:
        """Broadcast the events for a count change and return them in send order.

        Never raises: each event is attempted even if an earlier one failed.
        """
        try:
            events = build_referral_events(previous_count, new_count)
        except Exception:
            logger.exception(
                "referral_events_build_failed",
                user_id=user_id,
                previous_count=previous_count,
                new_count=new_count,
            )
            return []

        for event in events:
            try:
                self.registry.broadcast(user_id, event)
            except Exception:
                logger.exception("referral_event_broadcast_failed", user_id=user_id, event_type=event.type)

        # plain count bumps at debug
        log = logger.info if len(events) > 1 else logger.debug
        log(
            "referral_change_notified",
            user_id=user_id,
            previous_count=previous_count,
            new_count=new_count,
            events=[e.type for e in events],
        )
        return events
