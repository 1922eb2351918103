"""Tests for session token helpers."""

from datetime import datetime, timedelta, timezone

from waitlist.auth.session import (
    generate_session_token,
    is_session_expired,
    is_valid_session_token_format,
    session_expiration,
)


def test_token_is_64_hex() -> None:
    token = generate_session_token()
    assert len(token) == 64
    assert is_valid_session_token_format(token)
    assert generate_session_token() != token


def test_rejects_malformed_tokens() -> None:
    assert not is_valid_session_token_format("")
    assert not is_valid_session_token_format("z" * 64)
    assert not is_valid_session_token_format("a" * 63)


def test_expiration() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    expires = session_expiration(30, now=now)
    assert expires == now + timedelta(days=30)
    assert not is_session_expired(expires, now=now)
    assert is_session_expired(expires, now=expires + timedelta(seconds=1))


def test_naive_datetimes_are_utc() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert is_session_expired(datetime(2025, 12, 31), now=now)
    assert not is_session_expired(datetime(2026, 1, 2), now=now)
