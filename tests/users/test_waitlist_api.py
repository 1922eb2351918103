"""Waitlist API tests: join, stats, referral code validation, tiers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from waitlist.config import Settings
from waitlist.db.models import WaitlistUser
from waitlist.referrals.service import count_referrals
from waitlist.users.service import mask_email

JOIN_URL = "/api/v1/waitlist/join"
STATS_URL = "/api/v1/waitlist/me/stats"

JoinFn = Callable[..., Awaitable[dict]]


class TestJoin:
    @pytest.mark.asyncio
    async def test_join_new_user(self, client: AsyncClient, settings: Settings) -> None:
        response = await client.post(
            JOIN_URL,
            json={"email": "  Alice@Example.com ", "first_name": "Alice", "marketing_opt_in": True},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Successfully joined waitlist"
        assert data["new_referral_created"] is False

        user = data["user"]
        assert user["email"] == "alice@example.com"
        assert user["first_name"] == "Alice"
        assert user["marketing_opt_in"] is True
        assert len(user["referral_code"]) == 8
        assert user["referral_link"] == f"https://example.test?ref={user['referral_code']}"

        stats = data["referral_stats"]
        assert stats["actual_referral_count"] == 0
        assert stats["tier"] == "normal"
        assert stats["tier_label"] == "Waitlist Member"
        assert stats["next_tier_at"] == 3
        assert stats["next_tier_label"] == "1 Month Pro Free"
        assert stats["remaining_referrals"] == 3

        cookie = response.headers["set-cookie"]
        assert settings.session_cookie_name in cookie
        assert "HttpOnly" in cookie
        assert "samesite=strict" in cookie.lower()

    @pytest.mark.asyncio
    async def test_join_with_referral(self, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        bob = await join("bob@example.com", alice["user"]["referral_code"])

        assert bob["new_referral_created"] is True
        assert bob["message"] == "Successfully joined waitlist with referral"
        assert await count_referrals(db_session, alice["user"]["id"]) == 1

    @pytest.mark.asyncio
    async def test_join_with_pasted_referral_link(self, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        bob = await join("bob@example.com", f" {alice['user']['referral_link']} ")

        assert bob["new_referral_created"] is True
        assert await count_referrals(db_session, alice["user"]["id"]) == 1

    @pytest.mark.asyncio
    async def test_new_user_with_unknown_code_still_joins(self, join: JoinFn) -> None:
        data = await join("carol@example.com", "ZZZZZZZZ")
        assert data["new_referral_created"] is False
        assert data["message"] == "Successfully joined waitlist"

    @pytest.mark.asyncio
    async def test_blank_referral_code_is_ignored(self, join: JoinFn) -> None:
        data = await join("dave@example.com", "   ")
        assert data["new_referral_created"] is False

    @pytest.mark.asyncio
    async def test_rejoin_returns_existing_user(self, join: JoinFn) -> None:
        first = await join("alice@example.com")
        second = await join("ALICE@example.com")
        assert second["message"] == "User already exists"
        assert second["user"]["id"] == first["user"]["id"]
        assert second["user"]["referral_code"] == first["user"]["referral_code"]

    @pytest.mark.asyncio
    async def test_existing_user_can_be_credited(self, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        await join("bob@example.com")
        data = await join("bob@example.com", alice["user"]["referral_code"])
        assert data["new_referral_created"] is True
        assert data["message"] == "Referral credited to existing user"
        assert await count_referrals(db_session, alice["user"]["id"]) == 1

    @pytest.mark.asyncio
    async def test_existing_user_unknown_code(self, client: AsyncClient, join: JoinFn) -> None:
        await join("bob@example.com")
        response = await client.post(JOIN_URL, json={"email": "bob@example.com", "referral_code": "ZZZZZZZZ"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Referral code not found"

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, client: AsyncClient, join: JoinFn) -> None:
        bob = await join("bob@example.com")
        response = await client.post(
            JOIN_URL, json={"email": "bob@example.com", "referral_code": bob["user"]["referral_code"]}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot refer yourself"

    @pytest.mark.asyncio
    async def test_duplicate_referral_rejected(self, client: AsyncClient, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        code = alice["user"]["referral_code"]
        await join("bob@example.com", code)

        response = await client.post(JOIN_URL, json={"email": "bob@example.com", "referral_code": code})
        assert response.status_code == 409
        assert await count_referrals(db_session, alice["user"]["id"]) == 1

    @pytest.mark.asyncio
    async def test_referral_notifies_live_connections(self, join: JoinFn, app: FastAPI) -> None:
        alice = await join("alice@example.com")
        registry = app.state.sse_registry
        broadcasts: list[tuple[str, str]] = []
        original = registry.broadcast

        def _record(user_id, event):
            broadcasts.append((user_id, event.type))
            return original(user_id, event)

        registry.broadcast = _record
        await join("bob@example.com", alice["user"]["referral_code"])
        assert broadcasts == [(alice["user"]["id"], "referral_updated")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"email": "not-an-email"},
            {"email": "a@example.com", "referral_code": "short"},
            {"email": "a@example.com", "referral_code": "https://example.test?ref=bad"},
            {"email": "a@example.com", "phone_number": "call me"},
            {"email": "a@example.com", "additional_remarks": "x" * 501},
        ],
    )
    async def test_validation_errors(self, client: AsyncClient, body: dict) -> None:
        response = await client.post(JOIN_URL, json=body)
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"


class TestStats:
    @pytest.mark.asyncio
    async def test_requires_session(self, client: AsyncClient) -> None:
        response = await client.get(STATS_URL)
        assert response.status_code == 401
        assert response.json()["detail"] == "Session token required. Please join waitlist first."

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient, settings: Settings) -> None:
        client.cookies.set(settings.session_cookie_name, "f" * 64)
        response = await client.get(STATS_URL)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired session. Please join waitlist again."

    @pytest.mark.asyncio
    async def test_stats_for_session_user(self, client: AsyncClient, join: JoinFn) -> None:
        alice = await join("alice@example.com")
        code = alice["user"]["referral_code"]
        for i in range(4):
            await join(f"friend{i}@example.com", code)
        # the cookie jar now holds the last friend's session; sign back in as alice
        await join("alice@example.com")

        response = await client.get(STATS_URL)
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == alice["user"]["id"]
        stats = data["referral_stats"]
        assert stats["actual_referral_count"] == 4
        assert stats["display_referral_count"] == 4
        assert stats["tier"] == "1month"
        assert stats["next_tier_at"] == 6
        assert stats["remaining_referrals"] == 2
        assert stats["progress_percentage"] == 33
        assert stats["next_tier_message"] == "Refer 2 more people to unlock 3 Months Pro Free!"

    @pytest.mark.asyncio
    async def test_expired_session(self, client: AsyncClient, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        await db_session.execute(
            update(WaitlistUser)
            .where(WaitlistUser.id == alice["user"]["id"])
            .values(session_expires_at=datetime.now(timezone.utc) - timedelta(days=1))
        )
        await db_session.commit()

        response = await client.get(STATS_URL)
        assert response.status_code == 401
        assert response.json()["detail"] == "Session expired. Please join waitlist again."

    @pytest.mark.asyncio
    async def test_rejoin_refreshes_expired_session(self, client: AsyncClient, join: JoinFn, db_session: AsyncSession) -> None:
        alice = await join("alice@example.com")
        await db_session.execute(
            update(WaitlistUser)
            .where(WaitlistUser.id == alice["user"]["id"])
            .values(session_expires_at=datetime.now(timezone.utc) - timedelta(days=1))
        )
        await db_session.commit()

        await join("alice@example.com")
        response = await client.get(STATS_URL)
        assert response.status_code == 200


class TestReferralCodeValidation:
    @pytest.mark.asyncio
    async def test_valid_code(self, client: AsyncClient, join: JoinFn) -> None:
        alice = await join("alice@example.com")
        response = await client.get(f"/api/v1/waitlist/referral-codes/{alice['user']['referral_code']}")
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["referrer_email"] == mask_email("alice@example.com") == "al***@example.com"

    @pytest.mark.asyncio
    async def test_unknown_code(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/waitlist/referral-codes/ZZZZZZZZ")
        assert response.json() == {"valid": False, "referrer_email": None, "message": "Referral code not found"}

    @pytest.mark.asyncio
    async def test_malformed_code(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/waitlist/referral-codes/bad")
        assert response.json()["valid"] is False
        assert response.json()["message"] == "Invalid referral code format"


@pytest.mark.asyncio
async def test_tiers(client: AsyncClient) -> None:
    response = await client.get("/api/v1/waitlist/tiers")
    assert response.status_code == 200
    data = response.json()
    assert data["total_tiers"] == 4
    assert [t["tier"] for t in data["tiers"]] == ["normal", "1month", "3months", "founder"]
    assert data["tiers"][-1]["max_referrals"] is None
