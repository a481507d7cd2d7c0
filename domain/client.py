"""
Domain: Clients linked to a consultant.

A client (end customer) is linked to a consultant the first time an order
attributed to that consultant is placed. The link's `created_at` is what the
monthly report counts as a "new client".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class ClientLink:
    """Association between a consultant and a customer, unique per (consultant, email)."""

    id: UUID
    consultant_id: UUID
    customer_email: str
    created_at: datetime
    customer_name: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware."""
        require_utc_timestamp("created_at", self.created_at)
