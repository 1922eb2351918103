"""Referral code generation.

Codes are 8 characters from an alphabet without look-alikes (0/O, 1/I/l),
generated server-side with a cryptographic random source. Codes are
case-sensitive.
"""

from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.db.models import WaitlistUser

REFERRAL_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
REFERRAL_CODE_LENGTH = 8
MAX_GENERATION_ATTEMPTS = 5


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def is_valid_referral_code_format(code: str) -> bool:
    return len(code) == REFERRAL_CODE_LENGTH and all(c in REFERRAL_CODE_ALPHABET for c in code)


async def generate_unique_referral_code(db: AsyncSession) -> str:
    """Generate a referral code no existing user holds."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        code = generate_referral_code()
        existing = await db.execute(select(WaitlistUser.id).where(WaitlistUser.referral_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise RuntimeError(f"Failed to generate unique referral code after {MAX_GENERATION_ATTEMPTS} attempts")
