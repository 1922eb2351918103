"""Tests for referral code generation and referral links."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.db.models import WaitlistUser
from waitlist.referrals import codes
from waitlist.referrals.codes import (
    REFERRAL_CODE_ALPHABET,
    generate_referral_code,
    generate_unique_referral_code,
    is_valid_referral_code_format,
)
from waitlist.referrals.links import build_referral_link, extract_referral_code


class TestReferralCodes:
    def test_generated_code_shape(self) -> None:
        for _ in range(50):
            code = generate_referral_code()
            assert len(code) == 8
            assert set(code) <= set(REFERRAL_CODE_ALPHABET)
            assert is_valid_referral_code_format(code)

    def test_alphabet_has_no_lookalikes(self) -> None:
        assert not set("01OIl") & set(REFERRAL_CODE_ALPHABET)

    @pytest.mark.parametrize("code", ["", "abc", "ABCDEFGHJ", "ABCD0FGH", "ABCD-FGH"])
    def test_invalid_formats(self, code: str) -> None:
        assert is_valid_referral_code_format(code) is False

    @pytest.mark.asyncio
    async def test_unique_code(self, db_session: AsyncSession) -> None:
        code = await generate_unique_referral_code(db_session)
        assert is_valid_referral_code_format(code)

    @pytest.mark.asyncio
    async def test_gives_up_after_collisions(self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
        db_session.add(
            WaitlistUser(
                email="taken@example.com",
                referral_code="AAAAAAAA",
                session_token="a" * 64,
                session_expires_at=datetime(2099, 1, 1, tzinfo=timezone.utc),
            )
        )
        await db_session.commit()
        monkeypatch.setattr(codes, "generate_referral_code", lambda: "AAAAAAAA")
        with pytest.raises(RuntimeError):
            await generate_unique_referral_code(db_session)


class TestReferralLinks:
    def test_build_link(self) -> None:
        assert build_referral_link("AbCd2345", "https://app.example.com/") == "https://app.example.com?ref=AbCd2345"

    def test_build_link_rejects_bad_code(self) -> None:
        with pytest.raises(ValueError):
            build_referral_link("nope", "https://app.example.com")

    @pytest.mark.parametrize(
        "value",
        ["AbCd2345", "https://app.example.com?ref=AbCd2345", "https://app.example.com/join?x=1&ref=AbCd2345", "?ref=AbCd2345"],
    )
    def test_extract(self, value: str) -> None:
        assert extract_referral_code(value) == "AbCd2345"

    @pytest.mark.parametrize("value", ["", "https://app.example.com", "?ref=bad", "ftp://x?ref=AbCd2345"])
    def test_extract_nothing(self, value: str) -> None:
        assert extract_referral_code(value) is None
