"""Request/response schemas for waitlist endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from waitlist.referrals.links import extract_referral_code


class JoinRequest(BaseModel):
    email: EmailStr
    username: str | None = Field(default=None, max_length=100)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone_number: str | None = Field(default=None, max_length=20, pattern=r"^[\d+\-\s()]{7,20}$")
    marketing_opt_in: bool = False
    additional_remarks: str | None = Field(default=None, max_length=500)
    referral_code: str | None = Field(default=None, pattern=r"^[A-Za-z0-9]{8}$")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        v = v.strip().lower()
        if len(v) > 255:
            raise ValueError("Email must be 255 characters or less")
        return v

    @field_validator("referral_code", mode="before")
    @classmethod
    def normalize_referral_code(cls, v: object) -> object:
        """Accept a bare code or a pasted share link (`...?ref=<code>`)."""
        if not isinstance(v, str):
            return v
        v = v.strip()
        if not v:
            return None
        return extract_referral_code(v) or v


class WaitlistUserResponse(BaseModel):
    id: str
    email: str
    username: str | None
    first_name: str | None
    last_name: str | None
    phone_number: str | None
    marketing_opt_in: bool
    additional_remarks: str | None
    referral_code: str
    referral_link: str
    created_at: datetime
    updated_at: datetime


class ReferralStatsResponse(BaseModel):
    actual_referral_count: int
    display_referral_count: int
    tier: str
    tier_label: str
    tier_description: str
    next_tier_at: int | None = None
    next_tier_label: str | None = None
    remaining_referrals: int | None = None
    progress_percentage: int
    next_tier_message: str


class JoinResponse(BaseModel):
    success: bool = True
    user: WaitlistUserResponse
    referral_stats: ReferralStatsResponse
    new_referral_created: bool
    message: str


class StatsResponse(BaseModel):
    user: WaitlistUserResponse
    referral_stats: ReferralStatsResponse
    session_expires_at: datetime


class ReferralCodeValidationResponse(BaseModel):
    valid: bool
    referrer_email: str | None = None
    message: str


class TierResponse(BaseModel):
    tier: str
    label: str
    description: str
    min_referrals: int
    max_referrals: int | None


class TierStatsResponse(BaseModel):
    total_tiers: int
    progress_bar_max: int
    tiers: list[TierResponse]
    milestones: list[int]
