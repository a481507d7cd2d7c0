"""
Ports to the collaborators this core does not own.

Services depend only on these protocols. Production wiring uses the
Supabase repositories and the Stripe gateway; tests use in-memory fakes
that enforce the same unique constraints as the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from .client import ClientLink
from .commission import Commission, CommissionStatus
from .consultant import Consultant
from .order import CustomerInfo, LineItem, NewOrder, Order, PaymentStatus
from .report import MonthlyReportSummary


class ConsultantStore(Protocol):
    def find_active_by_code(self, code: str) -> Optional[Consultant]: ...

    def get_by_id(self, consultant_id: UUID) -> Optional[Consultant]: ...

    def list_report_recipients(self) -> List[Consultant]:
        """Active consultants with the monthly report preference enabled."""
        ...


class OrderStore(Protocol):
    def insert_order(self, order: NewOrder) -> Order:
        """Raises DuplicateExternalReferenceError on a reused payment reference."""
        ...

    def find_order_by_external_reference(self, reference: str) -> Optional[Order]: ...

    def get_order_by_id(self, order_id: UUID) -> Optional[Order]: ...

    def update_payment_status(
        self,
        order_id: UUID,
        payment_status: PaymentStatus,
        status: Optional[str] = None,
    ) -> Order: ...


@dataclass(frozen=True, slots=True)
class CommissionFilters:
    consultant_id: Optional[UUID] = None
    reference_month: Optional[int] = None
    reference_year: Optional[int] = None
    status: Optional[CommissionStatus] = None


class CommissionStore(Protocol):
    def insert_commission(self, commission: Commission) -> Commission:
        """Raises DuplicateCommissionError if the order already has one."""
        ...

    def find_commission_by_order_id(self, order_id: UUID) -> Optional[Commission]: ...

    def find_commissions_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[Commission]:
        """Commissions whose order_date falls in the inclusive [start, end] day range."""
        ...

    def list_commissions(self, filters: CommissionFilters) -> List[Commission]:
        """Matching commissions, newest first."""
        ...

    def get_commissions_by_ids(self, commission_ids: Sequence[UUID]) -> List[Commission]: ...

    def update_commission(self, commission: Commission) -> Commission:
        """Persist status and status-timestamp fields; monetary fields are never written."""
        ...


class ClientStore(Protocol):
    def find_clients_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[ClientLink]: ...

    def link_client(
        self,
        consultant_id: UUID,
        customer_email: str,
        customer_name: Optional[str],
        linked_at: datetime,
    ) -> bool:
        """Link a customer to a consultant; False if the link already existed."""
        ...


@dataclass(frozen=True, slots=True)
class NotificationResult:
    success: bool
    error: Optional[str] = None


class NotificationSink(Protocol):
    def send_report(self, consultant: Consultant, summary: MonthlyReportSummary) -> NotificationResult: ...

    def notify_new_commission(self, consultant: Consultant, commission: Commission) -> NotificationResult: ...


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    url: Optional[str] = None


class CheckoutGateway(Protocol):
    def create_checkout_session(
        self,
        customer: CustomerInfo,
        items: Sequence[LineItem],
        shipping_fee: Any,
        metadata: Mapping[str, str],
    ) -> CheckoutSession:
        """Raises PaymentGatewayError when the gateway rejects the request."""
        ...

    def expire_checkout_session(self, session_id: str) -> None:
        """Close an open session so it can no longer be paid."""
        ...

    def list_line_items(self, session_id: str) -> List[LineItem]:
        """Product lines of a completed session (the shipping line is excluded)."""
        ...

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Mapping[str, Any]:
        """Return the verified event; raises WebhookSignatureError otherwise."""
        ...
