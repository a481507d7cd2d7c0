"""
Domain: Attribution tokens.

A token remembers which consultant referred a visitor. It is created when a
referral code is first observed (a `?ref=` URL parameter or explicit entry),
never mutated afterwards, and treated as absent once it is older than the
time-to-live.

Wire format (shared by the cookie and client-side storage surfaces):

    {"code": "ANA01", "timestamp": 1717000000000, "source": "url"}

`timestamp` is the issue time in epoch milliseconds.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .time import require_utc_timestamp

REFERRAL_QUERY_PARAM = "ref"
DEFAULT_TTL = timedelta(days=30)


def canonicalize_code(code: Optional[str]) -> Optional[str]:
    """Trim and upper-case a referral code; blank input becomes None."""

    if code is None:
        return None
    text = code.strip().upper()
    return text or None


@dataclass(frozen=True, slots=True)
class AttributionToken:
    """
    Immutable referral token.

    A new observation replaces the token entirely (last referrer wins); there
    is no in-place update of `issued_at`.
    """

    code: str
    issued_at: datetime
    source: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("issued_at", self.issued_at)
        canonical = canonicalize_code(self.code)
        if canonical is None:
            raise ValueError("code must not be empty")
        if canonical != self.code:
            object.__setattr__(self, "code", canonical)

    def is_expired(self, now: datetime, ttl: timedelta = DEFAULT_TTL) -> bool:
        """Expired iff strictly more than `ttl` has elapsed since issue."""

        return now - self.issued_at > ttl

    def to_json(self) -> str:
        payload = {
            "code": self.code,
            "timestamp": int(self.issued_at.timestamp() * 1000),
        }
        if self.source is not None:
            payload["source"] = self.source
        return json.dumps(payload, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> Optional["AttributionToken"]:
        """
        Parse a stored token.

        Corrupt or legacy values (e.g. a bare code string) return None so
        readers treat them as absent rather than failing.
        """

        try:
            data = json.loads(raw)
            issued_at = datetime.fromtimestamp(int(data["timestamp"]) / 1000, tz=timezone.utc)
            return cls(code=str(data["code"]), issued_at=issued_at, source=data.get("source"))
        except (ValueError, TypeError, KeyError):
            return None


def extract_code_from_url(url: str) -> Optional[str]:
    """
    Return the canonical referral code carried in `url`, or None.

    Example:
        extract_code_from_url("https://shop.example/produtos?ref=ana01")
        # "ANA01"
    """

    try:
        query = urlsplit(url).query
    except ValueError:
        return None
    for key, value in parse_qsl(query):
        if key == REFERRAL_QUERY_PARAM:
            return canonicalize_code(value)
    return None


def build_referral_url(base_url: str, code: str) -> str:
    """Set `?ref=CODE` on `base_url`, keeping any other query parameters."""

    canonical = canonicalize_code(code)
    if canonical is None:
        return base_url
    try:
        parts = urlsplit(base_url)
    except ValueError:
        return base_url
    params = [(k, v) for k, v in parse_qsl(parts.query) if k != REFERRAL_QUERY_PARAM]
    params.append((REFERRAL_QUERY_PARAM, canonical))
    return urlunsplit(parts._replace(query=urlencode(params)))
