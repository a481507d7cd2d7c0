"""
Row conversion helpers shared by the Supabase repositories.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.time import require_utc_timestamp

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


def parse_optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def day_bounds(start: date, end: date) -> tuple[str, str]:
    """
    ISO bounds for an inclusive day range, as [start 00:00, end+1 00:00).

    Used with `.gte()` / `.lt()` so the whole last day is included.
    """

    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower.isoformat(), upper.isoformat()


def is_unique_violation(error: APIError) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION


def raise_for_error(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")


def rows_of(response: Any) -> list:
    return getattr(response, "data", None) or []
