"""
In-memory implementations of the store, notification and gateway ports.

The stores enforce the same unique constraints as the database
(orders.external_payment_reference, consultant_commissions.order_id,
consultant_clients(consultant_id, customer_email)) under a lock, so
concurrency tests exercise the real idempotency path.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import threading
import time as time_module
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from config.settings import Settings
from domain.client import ClientLink
from domain.commission import Commission
from domain.consultant import Consultant, ConsultantStatus
from domain.errors import DuplicateCommissionError, DuplicateExternalReferenceError, OrderNotFoundError
from domain.order import LineItem, NewOrder, Order, PaymentStatus
from domain.ports import CheckoutSession, CommissionFilters, NotificationResult
from domain.report import MonthlyReportSummary
from repositories.stores import Stores
from services.payment_gateway import StripeCheckoutGateway

WEBHOOK_SECRET = "whsec_test_secret"

FIXED_NOW = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)

ANA_ID = UUID("00000000-0000-0000-0000-0000000000a1")
RUI_ID = UUID("00000000-0000-0000-0000-0000000000b2")


def _in_day_range(value: datetime, start: date, end: date) -> bool:
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower <= value < upper


class InMemoryConsultantStore:
    def __init__(self, consultants: Sequence[Consultant] = ()):
        self.consultants: Dict[UUID, Consultant] = {c.id: c for c in consultants}
        self.lookups: List[str] = []

    def add(self, consultant: Consultant) -> Consultant:
        self.consultants[consultant.id] = consultant
        return consultant

    def find_active_by_code(self, code: str) -> Optional[Consultant]:
        self.lookups.append(code)
        for consultant in self.consultants.values():
            if consultant.code == code and consultant.status == ConsultantStatus.ACTIVE:
                return consultant
        return None

    def get_by_id(self, consultant_id: UUID) -> Optional[Consultant]:
        return self.consultants.get(consultant_id)

    def list_report_recipients(self) -> List[Consultant]:
        return [
            c for c in self.consultants.values()
            if c.status == ConsultantStatus.ACTIVE and c.monthly_report_enabled
        ]


class InMemoryOrderStore:
    def __init__(self) -> None:
        self.orders: Dict[UUID, Order] = {}
        self._lock = threading.Lock()

    def insert_order(self, order: NewOrder) -> Order:
        with self._lock:
            reference = order.external_payment_reference
            if reference and any(o.external_payment_reference == reference for o in self.orders.values()):
                raise DuplicateExternalReferenceError(reference)

            order_id = uuid4()
            stored = Order(
                id=order_id,
                order_number=f"FM-{order_id.hex[:8].upper()}",
                customer_email=order.customer.email,
                customer_name=order.customer.full_name,
                customer_phone=order.customer.phone,
                shipping_address=order.customer.shipping_address(),
                items=list(order.items),
                subtotal=order.totals.subtotal,
                shipping=order.totals.shipping,
                total=order.totals.total,
                payment_method=order.payment_method,
                payment_status=order.payment_status,
                status=order.status,
                created_at=order.created_at,
                consultant_id=order.consultant_id,
                consultant_code=order.consultant_code,
                external_payment_reference=reference,
            )
            self.orders[order_id] = stored
            return stored

    def find_order_by_external_reference(self, reference: str) -> Optional[Order]:
        with self._lock:
            for order in self.orders.values():
                if order.external_payment_reference == reference:
                    return order
        return None

    def get_order_by_id(self, order_id: UUID) -> Optional[Order]:
        return self.orders.get(order_id)

    def update_payment_status(
        self,
        order_id: UUID,
        payment_status: PaymentStatus,
        status: Optional[str] = None,
    ) -> Order:
        with self._lock:
            current = self.orders.get(order_id)
            if current is None:
                raise OrderNotFoundError(str(order_id))
            updated = replace(current, payment_status=payment_status, status=status or current.status)
            self.orders[order_id] = updated
            return updated

    def by_reference(self, reference: str) -> List[Order]:
        return [o for o in self.orders.values() if o.external_payment_reference == reference]


class InMemoryCommissionStore:
    def __init__(self) -> None:
        self.commissions: Dict[UUID, Commission] = {}
        self._lock = threading.Lock()
        self.fail_inserts = False

    def insert_commission(self, commission: Commission) -> Commission:
        if self.fail_inserts:
            raise RuntimeError("Failed to insert commission: connection reset")
        with self._lock:
            if any(c.order_id == commission.order_id for c in self.commissions.values()):
                raise DuplicateCommissionError(commission.order_id)
            self.commissions[commission.id] = commission
            return commission

    def find_commission_by_order_id(self, order_id: UUID) -> Optional[Commission]:
        for commission in self.commissions.values():
            if commission.order_id == order_id:
                return commission
        return None

    def find_commissions_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[Commission]:
        return [
            c for c in self.commissions.values()
            if c.consultant_id == consultant_id and _in_day_range(c.order_date, start, end)
        ]

    def list_commissions(self, filters: CommissionFilters) -> List[Commission]:
        matching = [
            c for c in self.commissions.values()
            if (filters.consultant_id is None or c.consultant_id == filters.consultant_id)
            and (filters.status is None or c.status == filters.status)
            and (filters.reference_month is None or c.reference_month == filters.reference_month)
            and (filters.reference_year is None or c.reference_year == filters.reference_year)
        ]
        return sorted(matching, key=lambda c: c.created_at, reverse=True)

    def get_commissions_by_ids(self, commission_ids: Sequence[UUID]) -> List[Commission]:
        return [self.commissions[cid] for cid in commission_ids if cid in self.commissions]

    def update_commission(self, commission: Commission) -> Commission:
        self.commissions[commission.id] = commission
        return commission

    def for_order(self, order_id: UUID) -> List[Commission]:
        return [c for c in self.commissions.values() if c.order_id == order_id]


class InMemoryClientStore:
    def __init__(self) -> None:
        self.links: Dict[Tuple[UUID, str], ClientLink] = {}
        self._lock = threading.Lock()

    def find_clients_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[ClientLink]:
        return [
            link for link in self.links.values()
            if link.consultant_id == consultant_id and _in_day_range(link.created_at, start, end)
        ]

    def link_client(
        self,
        consultant_id: UUID,
        customer_email: str,
        customer_name: Optional[str],
        linked_at: datetime,
    ) -> bool:
        key = (consultant_id, customer_email.lower())
        with self._lock:
            if key in self.links:
                return False
            self.links[key] = ClientLink(
                id=uuid4(),
                consultant_id=consultant_id,
                customer_email=customer_email.lower(),
                created_at=linked_at,
                customer_name=customer_name,
            )
            return True


class RecordingNotificationSink:
    def __init__(self, failing_consultants: Sequence[UUID] = (), raising_consultants: Sequence[UUID] = ()):
        self.reports: List[Tuple[Consultant, MonthlyReportSummary]] = []
        self.new_commissions: List[Tuple[Consultant, Commission]] = []
        self._failing = set(failing_consultants)
        self._raising = set(raising_consultants)

    def send_report(self, consultant: Consultant, summary: MonthlyReportSummary) -> NotificationResult:
        if consultant.id in self._raising:
            raise ConnectionError("mail relay unreachable")
        if consultant.id in self._failing:
            return NotificationResult(success=False, error="mailbox rejected")
        self.reports.append((consultant, summary))
        return NotificationResult(success=True)

    def notify_new_commission(self, consultant: Consultant, commission: Commission) -> NotificationResult:
        self.new_commissions.append((consultant, commission))
        return NotificationResult(success=True)


class FakeStripeGateway(StripeCheckoutGateway):
    """
    Real webhook signature verification; session creation and line items
    are answered locally instead of calling Stripe.
    """

    def __init__(self, settings: Settings, line_items: Optional[List[LineItem]] = None):
        super().__init__(settings)
        self.sessions: List[dict] = []
        self.expired: List[str] = []
        self.line_items: List[LineItem] = list(line_items or [])

    def create_checkout_session(self, customer, items, shipping_fee, metadata) -> CheckoutSession:
        session_id = f"cs_test_{uuid4().hex[:12]}"
        self.sessions.append(
            {
                "id": session_id,
                "customer_email": customer.email,
                "items": list(items),
                "shipping_fee": shipping_fee,
                "metadata": dict(metadata),
            }
        )
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def expire_checkout_session(self, session_id: str) -> None:
        self.expired.append(session_id)

    def list_line_items(self, session_id: str) -> List[LineItem]:
        return list(self.line_items)


def make_settings(**overrides) -> Settings:
    values = dict(
        stripe_webhook_secret=WEBHOOK_SECRET,
        cron_secret="cron-secret",
        admin_api_token="admin-token",
        cookie_secure=False,
    )
    values.update(overrides)
    return Settings(**values)


def in_memory_stores(consultants: Sequence[Consultant] = ()) -> Stores:
    return Stores(
        consultants=InMemoryConsultantStore(consultants),
        orders=InMemoryOrderStore(),
        commissions=InMemoryCommissionStore(),
        clients=InMemoryClientStore(),
    )


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a `Stripe-Signature` header the way Stripe signs webhook deliveries."""

    timestamp = int(time_module.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_event(
    session_id: str,
    event_type: str = "checkout.session.completed",
    payment_status: str = "paid",
    consultant_code: Optional[str] = "ANA01",
    email: str = "maria@example.com",
) -> bytes:
    customer_info = {"first_name": "Maria", "last_name": "Silva", "email": email, "city": "Porto"}
    event = {
        "id": f"evt_{session_id}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": payment_status,
                "customer_email": email,
                "metadata": {
                    "customer_info": json.dumps(customer_info),
                    "consultant_code": consultant_code or "",
                },
            }
        },
    }
    return json.dumps(event).encode("utf-8")
