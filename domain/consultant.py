"""
Domain: Consultants (independent sales consultants).

Consultants are owned by the back office; this core only reads them. Only
active consultants are eligible for attribution.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID


class ConsultantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


@dataclass(frozen=True, slots=True)
class Consultant:
    """
    Consultant record as seen by attribution and commissions.

    `commission_percentage` is 0-100 and is read at commission creation time;
    later changes never touch existing commissions.
    """

    id: UUID
    code: str
    status: ConsultantStatus
    commission_percentage: Decimal

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    monthly_report_enabled: bool = False

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.commission_percentage <= Decimal("100"):
            raise ValueError(
                f"commission_percentage must be between 0 and 100, got {self.commission_percentage}"
            )

    def is_active(self) -> bool:
        return self.status == ConsultantStatus.ACTIVE
