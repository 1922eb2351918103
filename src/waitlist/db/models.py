"""ORM models for the waitlist and referral graph."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waitlist.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Waitlist users
# ---------------------------------------------------------------------------


class WaitlistUser(Base):
    """A person who joined the waitlist. Owns one referral code and one session."""

    __tablename__ = "waitlist_users"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    marketing_opt_in: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    additional_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    referral_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    session_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    session_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, server_default=func.now(), onupdate=_utc_now
    )

    referrals_made: Mapped[list[Referral]] = relationship(
        "Referral", foreign_keys="Referral.referrer_id", back_populates="referrer", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class Referral(Base):
    """Directed edge: ``referrer`` brought ``referee`` to the waitlist."""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referrer_id", "referee_id", name="uq_referrals_referrer_referee"),
        Index("ix_referrals_referrer_id", "referrer_id"),
        Index("ix_referrals_referee_id", "referee_id"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    referrer_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("waitlist_users.id", ondelete="CASCADE"), nullable=False
    )
    referee_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("waitlist_users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, server_default=func.now())

    referrer: Mapped[WaitlistUser] = relationship(
        "WaitlistUser", foreign_keys=[referrer_id], back_populates="referrals_made"
    )
