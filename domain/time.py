"""
Domain time utilities (pure).

Centralized timestamp validation and calendar helpers.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def previous_month_range(today: date) -> tuple[date, date]:
    """
    Inclusive [first_day, last_day] of the calendar month before `today`.

    Example:
        previous_month_range(date(2024, 3, 1))
        # (date(2024, 2, 1), date(2024, 2, 29))
    """

    first_of_this_month = today.replace(day=1)
    last_of_previous = first_of_this_month - timedelta(days=1)
    return last_of_previous.replace(day=1), last_of_previous


def month_range(year: int, month: int) -> tuple[date, date]:
    """Inclusive [first_day, last_day] of the given calendar month."""

    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)
