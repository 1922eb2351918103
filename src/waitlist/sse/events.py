"""Notification events pushed to a referrer's browser over SSE.

Events are transient value objects: a type tag, a UTC timestamp and a
camelCase payload that the frontend consumes as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class NotificationEvent:
    type: ClassVar[str] = ""

    timestamp: str = field(default_factory=_utc_now_iso, kw_only=True)

    def payload(self) -> dict:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {"type": self.type, "timestamp": self.timestamp, "data": self.payload()}


@dataclass(frozen=True)
class Connected(NotificationEvent):
    type: ClassVar[str] = "connected"

    message: str = "Connected to referral updates"

    def payload(self) -> dict:
        return {"message": self.message}


@dataclass(frozen=True)
class ReferralUpdated(NotificationEvent):
    type: ClassVar[str] = "referral_updated"

    actual_count: int
    display_count: int
    tier: str
    previous_count: int | None = None

    def payload(self) -> dict:
        data = {
            "actualReferralCount": self.actual_count,
            "displayReferralCount": self.display_count,
            "tier": self.tier,
        }
        if self.previous_count is not None:
            data["previousCount"] = self.previous_count
        return data


@dataclass(frozen=True)
class TierUpgraded(NotificationEvent):
    type: ClassVar[str] = "tier_upgraded"

    previous_tier: str
    new_tier: str
    label: str
    count: int
    message: str

    def payload(self) -> dict:
        return {
            "previousTier": self.previous_tier,
            "newTier": self.new_tier,
            "newTierLabel": self.label,
            "referralCount": self.count,
            "message": self.message,
        }


@dataclass(frozen=True)
class MilestoneReached(NotificationEvent):
    type: ClassVar[str] = "milestone_reached"

    milestone: int
    total_referrals: int
    message: str

    def payload(self) -> dict:
        return {
            "milestone": self.milestone,
            "referralCount": self.total_referrals,
            "totalReferrals": self.total_referrals,
            "message": self.message,
        }


EVENT_TYPES: frozenset[str] = frozenset(
    cls.type for cls in (Connected, ReferralUpdated, TierUpgraded, MilestoneReached)
)
