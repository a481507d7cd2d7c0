"""
Attribution token store.

One logical token, two storage surfaces:
- a server-visible cookie, for server-rendered flows
- a client-side key/value store (local storage equivalent), for client flows

Both surfaces share the same wire format, TTL, canonicalization and expiry
check. Callers only see AttributionTokenStore; an adapter that is not
available in the current context (cookies blocked, no client storage) reads
as "absent" and never raises.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Mapping, MutableMapping, Optional, Protocol
from urllib.parse import quote, unquote

from starlette.responses import Response

from domain.attribution import DEFAULT_TTL, AttributionToken, canonicalize_code, extract_code_from_url
from domain.time import utc_now

logger = logging.getLogger(__name__)

COOKIE_NAME = "consultant_ref"
STORAGE_KEY = "consultant_code"


class AttributionStorageUnavailable(Exception):
    """Raised by an adapter whose storage surface is not usable in this context."""


class AttributionTokenPort(Protocol):
    def load(self) -> Optional[str]: ...

    def save(self, raw: str, ttl: timedelta) -> None: ...

    def remove(self) -> None: ...


class CookieTokenAdapter:
    """
    Cookie surface.

    Reads come from the incoming request's cookies; writes go to the outgoing
    response. Without a response the adapter is read-only and writes raise
    AttributionStorageUnavailable.
    """

    def __init__(
        self,
        cookies: Optional[Mapping[str, str]],
        response: Optional[Response] = None,
        secure: bool = True,
    ):
        self._cookies = cookies
        self._response = response
        self._secure = secure
        # Reflects writes made during this request
        self._pending: Optional[str] = None
        self._removed = False

    def load(self) -> Optional[str]:
        if self._pending is not None:
            return self._pending
        if self._removed or self._cookies is None:
            return None
        value = self._cookies.get(COOKIE_NAME)
        return unquote(value) if value else None

    def save(self, raw: str, ttl: timedelta) -> None:
        if self._response is None:
            raise AttributionStorageUnavailable("cookie surface is read-only here")
        # Percent-encoded so the JSON survives cookie quoting rules
        self._response.set_cookie(
            COOKIE_NAME,
            quote(raw, safe=""),
            max_age=int(ttl.total_seconds()),
            path="/",
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )
        self._pending = raw
        self._removed = False

    def remove(self) -> None:
        if self._response is None:
            raise AttributionStorageUnavailable("cookie surface is read-only here")
        self._response.delete_cookie(COOKIE_NAME, path="/")
        self._pending = None
        self._removed = True


class ClientStorageAdapter:
    """Client-side key/value surface; `storage=None` means not supported here."""

    def __init__(self, storage: Optional[MutableMapping[str, str]]):
        self._storage = storage

    def _require_storage(self) -> MutableMapping[str, str]:
        if self._storage is None:
            raise AttributionStorageUnavailable("client storage not available")
        return self._storage

    def load(self) -> Optional[str]:
        if self._storage is None:
            return None
        return self._storage.get(STORAGE_KEY)

    def save(self, raw: str, ttl: timedelta) -> None:
        self._require_storage()[STORAGE_KEY] = raw

    def remove(self) -> None:
        self._require_storage().pop(STORAGE_KEY, None)


class AttributionTokenStore:
    """
    Reads and writes the referral token across all configured surfaces.

    Policy: last observed referrer wins. `persist` overwrites unconditionally
    and resets `issued_at`.
    """

    def __init__(
        self,
        adapters: Iterable[AttributionTokenPort],
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._adapters: List[AttributionTokenPort] = list(adapters)
        self._ttl = ttl
        self._clock = clock

    def extract_code_from_url(self, url: str) -> Optional[str]:
        return extract_code_from_url(url)

    def persist(self, code: str, source: Optional[str] = None) -> AttributionToken:
        canonical = canonicalize_code(code)
        if canonical is None:
            raise ValueError("Referral code must not be empty")

        token = AttributionToken(code=canonical, issued_at=self._clock(), source=source)
        raw = token.to_json()

        for adapter in self._adapters:
            try:
                adapter.save(raw, self._ttl)
            except AttributionStorageUnavailable as e:
                logger.debug(f"Skipping attribution surface {type(adapter).__name__}: {e}")
        return token

    def read(self) -> Optional[AttributionToken]:
        """
        First valid, unexpired token across surfaces, or None.

        Stale or corrupt tokens are cleared from the surface they were found on.
        """

        now = self._clock()
        for adapter in self._adapters:
            raw = adapter.load()
            if not raw:
                continue

            token = AttributionToken.from_json(raw)
            if token is not None and not token.is_expired(now, self._ttl):
                return token

            try:
                adapter.remove()
            except AttributionStorageUnavailable:
                pass
        return None

    def clear(self) -> None:
        for adapter in self._adapters:
            try:
                adapter.remove()
            except AttributionStorageUnavailable as e:
                logger.debug(f"Cannot clear attribution surface {type(adapter).__name__}: {e}")


def cookie_token_store(
    cookies: Optional[Mapping[str, str]],
    response: Optional[Response] = None,
    ttl_days: int = 30,
    secure: bool = True,
    clock: Callable[[], datetime] = utc_now,
) -> AttributionTokenStore:
    """Store over the cookie surface only, as used by the HTTP handlers."""

    return AttributionTokenStore(
        [CookieTokenAdapter(cookies, response, secure=secure)],
        ttl=timedelta(days=ttl_days),
        clock=clock,
    )


__all__ = [
    "COOKIE_NAME",
    "STORAGE_KEY",
    "AttributionStorageUnavailable",
    "AttributionTokenPort",
    "CookieTokenAdapter",
    "ClientStorageAdapter",
    "AttributionTokenStore",
    "cookie_token_store",
]
