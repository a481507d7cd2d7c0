"""
Domain: Consultant commissions.

Contract excerpts implemented here:
- commission_amount = round(order_amount * commission_rate / 100, 2), half-up.
- The rate is copied onto the commission when it is created; the amount is
  derived once and never recomputed.
- At most one commission per order (enforced by the storage layer on
  order_id).
- Status lifecycle: pending -> approved -> paid, with cancel allowed from
  pending or approved.

This module contains only pure entities and arithmetic: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import InvalidCommissionTransitionError
from .order import quantize_money
from .time import require_utc_timestamp


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class CommissionAction(str, Enum):
    APPROVE = "approve"
    PAY = "pay"
    CANCEL = "cancel"


def calculate_commission_amount(order_amount: Decimal, rate: Decimal) -> Decimal:
    """
    Commission owed for an order total at a percentage rate.

    Example:
        calculate_commission_amount(Decimal("33.33"), Decimal("15"))
        # Decimal("5.00")  (4.9995 rounds half-up)
    """

    return quantize_money(order_amount * rate / Decimal("100"))


@dataclass(frozen=True, slots=True)
class Commission:
    """
    Immutable commission record.

    Status transitions return a new instance; the monetary fields are carried
    over untouched.
    """

    id: UUID
    consultant_id: UUID
    order_id: UUID
    order_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    status: CommissionStatus
    reference_month: int
    reference_year: int
    order_date: datetime
    created_at: datetime

    client_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None

    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    cancellation_reason: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("order_date", self.order_date)
        require_utc_timestamp("created_at", self.created_at)
        for name in ("approved_at", "paid_at", "cancelled_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)
        if not 1 <= self.reference_month <= 12:
            raise ValueError(f"reference_month must be 1-12, got {self.reference_month}")

    @property
    def counts_towards_earnings(self) -> bool:
        return self.status != CommissionStatus.CANCELLED

    @property
    def client_key(self) -> str:
        """Grouping key for per-client rankings."""

        if self.client_id is not None:
            return str(self.client_id)
        return (self.customer_email or "").lower()

    def transition_error(self, action: CommissionAction) -> Optional[str]:
        """Reason `action` is not allowed from the current status, or None."""

        if action == CommissionAction.APPROVE and self.status != CommissionStatus.PENDING:
            return f"Commission {self.id} is not pending"
        if action == CommissionAction.PAY and self.status != CommissionStatus.APPROVED:
            return f"Commission {self.id} is not approved"
        if action == CommissionAction.CANCEL and self.status in (
            CommissionStatus.PAID,
            CommissionStatus.CANCELLED,
        ):
            return f"Commission {self.id} cannot be cancelled"
        return None

    def approved(self, at: datetime) -> "Commission":
        self._require_allowed(CommissionAction.APPROVE)
        return replace(self, status=CommissionStatus.APPROVED, approved_at=at)

    def paid(
        self,
        at: datetime,
        payment_method: str = "bank_transfer",
        payment_reference: Optional[str] = None,
    ) -> "Commission":
        self._require_allowed(CommissionAction.PAY)
        return replace(
            self,
            status=CommissionStatus.PAID,
            paid_at=at,
            payment_method=payment_method,
            payment_reference=payment_reference,
        )

    def cancelled(self, at: datetime, reason: Optional[str] = None) -> "Commission":
        self._require_allowed(CommissionAction.CANCEL)
        return replace(
            self,
            status=CommissionStatus.CANCELLED,
            cancelled_at=at,
            cancellation_reason=reason,
        )

    def _require_allowed(self, action: CommissionAction) -> None:
        error = self.transition_error(action)
        if error is not None:
            raise InvalidCommissionTransitionError([error])
