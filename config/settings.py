"""
Runtime settings.

All configuration is read from the environment. A `.env` file at the project
root is loaded first so local development does not need exported variables.

Secrets (Supabase key, Stripe keys, cron secret) are never hard-coded; a
missing secret is only an error at the point where it is actually needed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved configuration for one process."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None

    # Bearer secrets for machine-to-machine and back-office routes
    cron_secret: Optional[str] = None
    admin_api_token: Optional[str] = None

    public_url: str = "http://localhost:3000"
    currency: str = "eur"

    free_shipping_threshold: Decimal = Decimal("50.00")
    flat_shipping_fee: Decimal = Decimal("5.99")

    # Only used when the attributed consultant record can no longer be found
    default_commission_percentage: Decimal = Decimal("10")

    attribution_ttl_days: int = 30
    cookie_secure: bool = True


def load_settings() -> Settings:
    """Build a Settings instance from the current environment."""

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
        cron_secret=os.getenv("CRON_SECRET"),
        admin_api_token=os.getenv("ADMIN_API_TOKEN"),
        public_url=os.getenv("PUBLIC_URL", "http://localhost:3000").rstrip("/"),
        currency=os.getenv("CURRENCY", "eur").lower(),
        free_shipping_threshold=Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "50.00")),
        flat_shipping_fee=Decimal(os.getenv("FLAT_SHIPPING_FEE", "5.99")),
        default_commission_percentage=Decimal(os.getenv("DEFAULT_COMMISSION_PERCENTAGE", "10")),
        attribution_ttl_days=int(os.getenv("ATTRIBUTION_TTL_DAYS", "30")),
        cookie_secure=_env_bool("COOKIE_SECURE", True),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""

    return load_settings()


__all__ = ["Settings", "load_settings", "get_settings"]
