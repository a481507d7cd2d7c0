"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes a
single cached `get_supabase()` accessor for the repository modules.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)

The client is built on first use so that importing repositories (e.g. from
tests that use in-memory stores) never needs credentials.
"""

from __future__ import annotations

from functools import lru_cache

from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Return the process-wide Supabase client."""

    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


__all__ = ["get_supabase"]
