"""Reward tiers and milestones derived from a referral count.

Tiers are never stored; they are recomputed from the confirmed referral
count every time. These values MUST match the frontend progress bar.
"""

from __future__ import annotations

from enum import Enum


class Tier(str, Enum):
    NORMAL = "normal"
    ONE_MONTH = "1month"
    THREE_MONTHS = "3months"
    FOUNDER = "founder"


# Ordered lowest to highest; list position is the tier rank.
TIER_THRESHOLDS: list[dict] = [
    {
        "tier": Tier.NORMAL,
        "min_referrals": 0,
        "max_referrals": 2,
        "label": "Waitlist Member",
        "description": "You've joined the waitlist! Start referring to unlock rewards.",
    },
    {
        "tier": Tier.ONE_MONTH,
        "min_referrals": 3,
        "max_referrals": 5,
        "label": "1 Month Pro Free",
        "description": "Great work! Enjoy 1 month of Pro features when we launch.",
    },
    {
        "tier": Tier.THREE_MONTHS,
        "min_referrals": 6,
        "max_referrals": 9,
        "label": "3 Months Pro Free",
        "description": "Incredible! You've earned 3 months of Pro features.",
    },
    {
        "tier": Tier.FOUNDER,
        "min_referrals": 10,
        "max_referrals": None,
        "label": "Founder's Table",
        "description": "Amazing! You're part of our exclusive Founder's Table with lifetime benefits.",
    },
]

KEY_MILESTONES: tuple[int, ...] = (3, 5, 6, 10, 25, 50, 100)

# UI progress never shows beyond this, tier computation uses the true count.
PROGRESS_BAR_MAX = 10

_TIER_ORDER: list[Tier] = [t["tier"] for t in TIER_THRESHOLDS]


def calculate_tier(referral_count: int) -> Tier:
    """Return the tier for a referral count."""
    if referral_count >= 10:
        return Tier.FOUNDER
    if referral_count >= 6:
        return Tier.THREE_MONTHS
    if referral_count >= 3:
        return Tier.ONE_MONTH
    return Tier.NORMAL


def tier_rank(tier: Tier | str) -> int:
    """Position of a tier in the order normal < 1month < 3months < founder."""
    return _TIER_ORDER.index(Tier(tier))


def tier_info(tier: Tier | str) -> dict:
    """Return the threshold record for a tier.

    Raises ValueError for an unknown tier value.
    """
    tier = Tier(tier)
    for threshold in TIER_THRESHOLDS:
        if threshold["tier"] is tier:
            return {**threshold, "tier": tier.value}
    raise ValueError(f"Invalid tier: {tier}")


def next_tier_threshold(referral_count: int) -> int | None:
    """Smallest tier threshold strictly above the count, None at founder."""
    for threshold in TIER_THRESHOLDS[1:]:
        if referral_count < threshold["min_referrals"]:
            return threshold["min_referrals"]
    return None


def remaining_referrals(referral_count: int) -> int | None:
    next_threshold = next_tier_threshold(referral_count)
    if next_threshold is None:
        return None
    return next_threshold - referral_count


def display_count(actual_count: int) -> int:
    return min(actual_count, PROGRESS_BAR_MAX)


def progress_percentage(referral_count: int) -> int:
    """Progress through the current tier band toward the next threshold (0-100)."""
    next_threshold = next_tier_threshold(referral_count)
    if next_threshold is None:
        return 100

    tier_start = tier_info(calculate_tier(referral_count))["min_referrals"]
    progress = referral_count - tier_start
    return round(progress / (next_threshold - tier_start) * 100)


def is_upgrade(previous_count: int, new_count: int) -> bool:
    """True when the new count lands in a strictly higher tier."""
    return tier_rank(calculate_tier(new_count)) > tier_rank(calculate_tier(previous_count))


def milestone_reached(previous_count: int, new_count: int) -> int | None:
    """Return the smallest milestone crossed going from previous to new count.

    A jump over several milestones reports the earliest one, e.g.
    ``milestone_reached(0, 12) == 3``.
    """
    for milestone in KEY_MILESTONES:
        if previous_count < milestone <= new_count:
            return milestone
    return None


def tier_upgrade_message(new_tier: Tier | str) -> str:
    new_tier = Tier(new_tier)
    label = tier_info(new_tier)["label"]

    if new_tier is Tier.ONE_MONTH:
        return f"Congratulations! You've unlocked {label}! 🎉"
    if new_tier is Tier.THREE_MONTHS:
        return f"Amazing! You've reached {label}! 🚀"
    if new_tier is Tier.FOUNDER:
        return f"Incredible! Welcome to the {label}! 👑"
    return f"You're now at {label}!"


def next_tier_message(referral_count: int) -> str:
    remaining = remaining_referrals(referral_count)
    if remaining is None:
        return "You're at the highest tier! Keep referring to support the community."

    next_label = tier_info(calculate_tier(referral_count + remaining))["label"]
    noun = "person" if remaining == 1 else "people"
    return f"Refer {remaining} more {noun} to unlock {next_label}!"


def all_tiers() -> list[dict]:
    return [tier_info(t["tier"]) for t in TIER_THRESHOLDS]


def tier_stats() -> dict:
    """Configuration summary of the tier system."""
    return {
        "total_tiers": len(TIER_THRESHOLDS),
        "progress_bar_max": PROGRESS_BAR_MAX,
        "tiers": all_tiers(),
        "milestones": list(KEY_MILESTONES),
    }
