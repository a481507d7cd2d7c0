"""
Tests for `domain/attribution.py` and `services/attribution_store.py`.

Covers contract rules:
- Codes are canonicalized (trimmed, upper-cased) everywhere.
- A token is valid iff at most TTL has elapsed since issue.
- Last referrer wins: persisting replaces the token and resets issued_at.
- Corrupt or unavailable storage reads as "no token" and never raises.
"""

from __future__ import annotations

import json
from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest
from starlette.responses import Response

from domain.attribution import AttributionToken, build_referral_url, canonicalize_code, extract_code_from_url
from services.attribution_store import (
    COOKIE_NAME,
    STORAGE_KEY,
    AttributionTokenStore,
    ClientStorageAdapter,
    CookieTokenAdapter,
    cookie_token_store,
)

ISSUED = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("ana01", "ANA01"),
        ("  Ana01 ", "ANA01"),
        ("", None),
        ("   ", None),
        (None, None),
    ],
)
def test_canonicalize_code(raw, expected) -> None:
    assert canonicalize_code(raw) == expected


def test_extract_code_from_url() -> None:
    """Verify the ?ref= parameter is found and canonicalized."""

    assert extract_code_from_url("https://loja.example/produtos?ref=ana01") == "ANA01"
    assert extract_code_from_url("https://loja.example/?utm_source=x&ref=%20rui02%20") == "RUI02"
    assert extract_code_from_url("https://loja.example/produtos") is None
    assert extract_code_from_url("https://loja.example/?ref=") is None


def test_build_referral_url_keeps_other_parameters() -> None:
    url = build_referral_url("https://loja.example/colecao?page=2&ref=OLD", "ana01")

    assert "page=2" in url
    assert "ref=ANA01" in url
    assert "OLD" not in url
    assert extract_code_from_url(url) == "ANA01"


def test_token_wire_format_matches_storage_contract() -> None:
    token = AttributionToken(code="ana01", issued_at=ISSUED, source="url")

    data = json.loads(token.to_json())

    assert data == {"code": "ANA01", "timestamp": int(ISSUED.timestamp() * 1000), "source": "url"}
    assert AttributionToken.from_json(token.to_json()) == token


@pytest.mark.parametrize("raw", ["ANA01", "{not json", '{"code": "ANA01"}', '{"timestamp": 1}', "[]"])
def test_token_from_corrupt_value_is_none(raw: str) -> None:
    assert AttributionToken.from_json(raw) is None


def test_token_requires_utc_issue_time() -> None:
    with pytest.raises(ValueError):
        AttributionToken(code="ANA01", issued_at=datetime(2024, 1, 1, 12, 0, 0))


def test_token_is_immutable() -> None:
    token = AttributionToken(code="ANA01", issued_at=ISSUED)

    with pytest.raises(FrozenInstanceError):
        token.code = "RUI02"  # type: ignore[misc]


def test_token_expiry_boundary_is_inclusive_of_ttl() -> None:
    """Exactly TTL old is still valid; one millisecond more is expired."""

    token = AttributionToken(code="ANA01", issued_at=ISSUED)
    ttl = timedelta(days=30)

    assert not token.is_expired(ISSUED + ttl, ttl)
    assert token.is_expired(ISSUED + ttl + timedelta(milliseconds=1), ttl)


def test_persist_then_read_returns_canonical_code() -> None:
    """A code persisted with extra whitespace reads back canonical within the TTL."""

    clock = Clock(ISSUED)
    store = AttributionTokenStore([ClientStorageAdapter({})], clock=clock)

    store.persist("  ana01 ", source="url")
    clock.now = ISSUED + timedelta(days=29)

    token = store.read()
    assert token is not None
    assert token.code == "ANA01"
    assert token.source == "url"


def test_read_after_ttl_returns_none_and_clears_storage() -> None:
    """A token older than the TTL reads as absent and is removed."""

    storage: dict = {}
    clock = Clock(ISSUED)
    store = AttributionTokenStore([ClientStorageAdapter(storage)], ttl=timedelta(days=30), clock=clock)

    store.persist("ANA01")
    clock.now = ISSUED + timedelta(days=31)

    assert store.read() is None
    assert STORAGE_KEY not in storage


def test_last_referrer_wins_and_resets_issue_time() -> None:
    clock = Clock(ISSUED)
    store = AttributionTokenStore([ClientStorageAdapter({})], clock=clock)

    store.persist("ANA01")
    clock.now = ISSUED + timedelta(days=20)
    store.persist("RUI02")
    clock.now = ISSUED + timedelta(days=45)

    token = store.read()
    assert token is not None
    assert token.code == "RUI02"
    assert token.issued_at == ISSUED + timedelta(days=20)


def test_corrupt_stored_value_reads_as_absent() -> None:
    storage = {STORAGE_KEY: "ANA01"}
    store = AttributionTokenStore([ClientStorageAdapter(storage)], clock=Clock(ISSUED))

    assert store.read() is None
    assert STORAGE_KEY not in storage


def test_unavailable_storage_never_raises() -> None:
    """Client storage not supported and a read-only cookie surface: reads are None, writes are skipped."""

    store = AttributionTokenStore(
        [ClientStorageAdapter(None), CookieTokenAdapter(cookies=None, response=None)],
        clock=Clock(ISSUED),
    )

    token = store.persist("ANA01")
    assert token.code == "ANA01"
    assert store.read() is None
    store.clear()


def test_persist_rejects_blank_code() -> None:
    store = AttributionTokenStore([ClientStorageAdapter({})], clock=Clock(ISSUED))

    with pytest.raises(ValueError):
        store.persist("   ")


def test_read_falls_through_to_second_surface() -> None:
    token = AttributionToken(code="ANA01", issued_at=ISSUED, source="manual")
    store = AttributionTokenStore(
        [CookieTokenAdapter(cookies={}), ClientStorageAdapter({STORAGE_KEY: token.to_json()})],
        clock=Clock(ISSUED + timedelta(days=1)),
    )

    assert store.read() == token


def test_cookie_surface_sets_http_only_cookie_with_ttl() -> None:
    response = Response()
    store = cookie_token_store(None, response, ttl_days=30, secure=True, clock=Clock(ISSUED))

    store.persist("ana01", source="url")

    header = response.headers["set-cookie"]
    assert header.startswith(f"{COOKIE_NAME}=")
    assert f"Max-Age={30 * 24 * 3600}" in header
    assert "HttpOnly" in header
    assert "samesite=lax" in header.lower()
    assert store.read().code == "ANA01"


def test_cookie_surface_clear_deletes_cookie() -> None:
    raw = AttributionToken(code="ANA01", issued_at=ISSUED).to_json()
    response = Response()
    store = cookie_token_store({COOKIE_NAME: raw}, response, clock=Clock(ISSUED))

    assert store.read() is not None
    store.clear()

    assert store.read() is None
    assert f"{COOKIE_NAME}=" in response.headers["set-cookie"]


def test_read_around_thirty_day_boundary() -> None:
    """Valid one second before 30 days, gone one second after."""

    clock = Clock(ISSUED)
    store = AttributionTokenStore([ClientStorageAdapter({})], ttl=timedelta(days=30), clock=clock)
    store.persist("ANA01")

    clock.now = ISSUED + timedelta(days=30) - timedelta(seconds=1)
    assert store.read() is not None

    clock.now = ISSUED + timedelta(days=30) + timedelta(seconds=1)
    assert store.read() is None
