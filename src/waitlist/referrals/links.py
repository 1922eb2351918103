"""Shareable referral links: ``<frontend>?ref=<code>``."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from waitlist.referrals.codes import is_valid_referral_code_format

REFERRAL_QUERY_PARAM = "ref"


def build_referral_link(referral_code: str, base_url: str) -> str:
    if not is_valid_referral_code_format(referral_code):
        raise ValueError(f"Invalid referral code format: {referral_code}")
    return f"{base_url.rstrip('/')}?{REFERRAL_QUERY_PARAM}={referral_code}"


def extract_referral_code(value: str) -> str | None:
    """Pull a referral code out of a bare code, a full link or a ``?ref=`` query."""
    if not value:
        return None
    if is_valid_referral_code_format(value):
        return value

    if value.startswith(("http://", "https://")):
        query = urlsplit(value).query
    elif value.startswith("?"):
        query = value[1:]
    else:
        return None

    codes = parse_qs(query).get(REFERRAL_QUERY_PARAM, [])
    if codes and is_valid_referral_code_format(codes[0]):
        return codes[0]
    return None
