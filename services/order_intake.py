"""
Order intake.

Four entry points create orders, and all of them run the same pipeline:

1. take the referral code carried by the request
2. resolve it to an active consultant (a miss means no attribution)
3. compute totals with the shared shipping rule
4. insert the order with its attribution in one write
5. if the order is already payment-confirmed, create its commission

Entry points:
- submit_direct_order: storefront order (bank transfer), pending payment
- initiate_mbway_payment: mobile-wallet request, pending payment
- create_checkout_session: hosted checkout; pending order keyed by session id
- record_checkout_payment: hosted-checkout webhook confirmation (idempotent
  on the session id)

Order persistence is the last step that can fail the request. Nothing is
written before it, and a commission failure after it never undoes the order.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from config.settings import Settings
from domain.attribution import canonicalize_code
from domain.commission import Commission
from domain.errors import DuplicateExternalReferenceError, OrderNotFoundError, OrderValidationError
from domain.order import (
    CustomerInfo,
    LineItem,
    NewOrder,
    Order,
    PaymentMethod,
    PaymentStatus,
    compute_order_totals,
)
from domain.ports import CheckoutGateway, CheckoutSession, NotificationSink
from domain.time import utc_now
from repositories.stores import Stores
from services.commission_service import create_commission_if_attributed
from services.consultant_lookup import resolve_consultant

logger = logging.getLogger(__name__)

# Portuguese mobile numbers, optionally prefixed with +351
_MBWAY_PHONE = re.compile(r"^(?:\+351)?9[1236]\d{7}$")

METADATA_CUSTOMER_INFO = "customer_info"
METADATA_CONSULTANT_CODE = "consultant_code"


@dataclass(frozen=True, slots=True)
class OrderSubmission:
    """Transport-independent order request."""

    customer: CustomerInfo
    items: List[LineItem]
    consultant_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PaymentContext:
    """Payment-method metadata; the only thing that differs between entry points."""

    method: PaymentMethod
    payment_status: PaymentStatus
    status: str = "pending"
    external_payment_reference: Optional[str] = None


@dataclass(frozen=True, slots=True)
class IntakeResult:
    """
    order: the created or matched order
    commission: commission created by this call, if any
    created: True when this call inserted the order
    duplicate: True when this call found the work already done
    """

    order: Order
    commission: Optional[Commission] = None
    created: bool = False
    duplicate: bool = False


@dataclass(frozen=True, slots=True)
class MbwayRequest:
    order: Order
    phone_number: str
    status: str
    message: str


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    session: CheckoutSession
    order: Order


def normalize_mbway_phone(phone_number: Optional[str]) -> str:
    compact = re.sub(r"\s", "", phone_number or "")
    if not _MBWAY_PHONE.match(compact):
        raise OrderValidationError("Invalid phone number", field="phone_number")
    return compact


class OrderIntakeService:
    def __init__(
        self,
        stores: Stores,
        settings: Settings,
        gateway: Optional[CheckoutGateway] = None,
        notifications: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.stores = stores
        self.settings = settings
        self.gateway = gateway
        self.notifications = notifications
        self.clock = clock

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    def _create_order(self, submission: OrderSubmission, payment: PaymentContext) -> IntakeResult:
        """
        Resolve attribution, compute totals, persist, then commission if paid.

        Raises:
            OrderValidationError: empty or malformed cart
            DuplicateExternalReferenceError: payment reference already has an order
            RuntimeError: order persistence failed
        """

        totals = compute_order_totals(
            submission.items,
            self.settings.free_shipping_threshold,
            self.settings.flat_shipping_fee,
        )
        consultant = resolve_consultant(self.stores.consultants, submission.consultant_code)

        new_order = NewOrder(
            customer=submission.customer,
            items=list(submission.items),
            totals=totals,
            payment_method=payment.method,
            payment_status=payment.payment_status,
            status=payment.status,
            created_at=self.clock(),
            consultant_id=consultant.id if consultant else None,
            consultant_code=consultant.code if consultant else None,
            external_payment_reference=payment.external_payment_reference,
        )
        order = self.stores.orders.insert_order(new_order)

        logger.info(
            "Order created",
            extra={
                "order_id": str(order.id),
                "payment_method": payment.method.value,
                "consultant_id": str(order.consultant_id) if order.consultant_id else None,
                "total": str(order.total),
            },
        )

        if order.is_attributed:
            self._link_client(order)

        commission = None
        if order.is_payment_confirmed:
            commission = create_commission_if_attributed(
                self.stores,
                order,
                self.settings.default_commission_percentage,
                notifications=self.notifications,
                now=self.clock(),
            )
        return IntakeResult(order=order, commission=commission, created=True)

    def _link_client(self, order: Order) -> None:
        try:
            self.stores.clients.link_client(
                order.consultant_id,
                order.customer_email,
                order.customer_name,
                order.created_at,
            )
        except Exception as e:
            logger.warning(
                f"Could not link client to consultant: {e}",
                extra={"order_id": str(order.id), "consultant_id": str(order.consultant_id)},
            )

    # ------------------------------------------------------------------
    # Customer-facing entry points
    # ------------------------------------------------------------------

    def submit_direct_order(self, submission: OrderSubmission) -> IntakeResult:
        """Storefront order paid by bank transfer; confirmed later by the back office."""

        return self._create_order(
            submission,
            PaymentContext(method=PaymentMethod.TRANSFER, payment_status=PaymentStatus.PENDING),
        )

    def initiate_mbway_payment(self, submission: OrderSubmission, phone_number: str) -> MbwayRequest:
        phone = normalize_mbway_phone(phone_number)
        result = self._create_order(
            submission,
            PaymentContext(method=PaymentMethod.MBWAY, payment_status=PaymentStatus.PENDING),
        )
        return MbwayRequest(
            order=result.order,
            phone_number=phone,
            status="pending",
            message="Payment request sent to your phone",
        )

    def create_checkout_session(self, submission: OrderSubmission) -> CheckoutResult:
        """
        Open a hosted checkout session and record the pending order under its id.

        The referral code travels in the session metadata so the webhook can
        attribute the order even if this pending order is never found.
        """

        if self.gateway is None:
            raise RuntimeError("No checkout gateway configured")

        totals = compute_order_totals(
            submission.items,
            self.settings.free_shipping_threshold,
            self.settings.flat_shipping_fee,
        )
        metadata = {
            METADATA_CUSTOMER_INFO: json.dumps(submission.customer.to_dict()),
            METADATA_CONSULTANT_CODE: canonicalize_code(submission.consultant_code) or "",
        }
        session = self.gateway.create_checkout_session(
            submission.customer,
            submission.items,
            totals.shipping,
            metadata,
        )

        # The session id is the order's payment reference, so the session comes first
        try:
            result = self._create_order(
                submission,
                PaymentContext(
                    method=PaymentMethod.CARD,
                    payment_status=PaymentStatus.PENDING,
                    external_payment_reference=session.id,
                ),
            )
        except Exception:
            self._expire_session(session.id)
            raise
        return CheckoutResult(session=session, order=result.order)

    def _expire_session(self, session_id: str) -> None:
        """Close a session whose order could not be saved, so it can never be paid."""

        try:
            self.gateway.expire_checkout_session(session_id)
        except Exception as e:
            logger.error(
                f"Could not expire orphaned checkout session: {e}",
                extra={"session_id": session_id, "needs_reconciliation": True},
            )
        else:
            logger.warning("Expired checkout session after order save failed", extra={"session_id": session_id})

    # ------------------------------------------------------------------
    # Payment confirmation
    # ------------------------------------------------------------------

    def confirm_order_payment(self, order_id: UUID) -> IntakeResult:
        """
        Move a pending order to paid and create its commission.

        Confirming an order that is already paid is a no-op.
        """

        order = self.stores.orders.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return self._confirm(order)

    def _confirm(self, order: Order) -> IntakeResult:
        if order.is_payment_confirmed:
            return IntakeResult(order=order, duplicate=True)

        paid = self.stores.orders.update_payment_status(order.id, PaymentStatus.PAID, status="processing")
        commission = create_commission_if_attributed(
            self.stores,
            paid,
            self.settings.default_commission_percentage,
            notifications=self.notifications,
            now=self.clock(),
        )
        return IntakeResult(order=paid, commission=commission)

    def record_checkout_payment(
        self,
        session_id: str,
        submission_factory: Callable[[], OrderSubmission],
        paid: bool,
    ) -> IntakeResult:
        """
        Webhook-side intake for a hosted checkout session.

        The session id is the idempotency key. If an order already carries it,
        creation is skipped and the order is only confirmed when it is not
        already. Concurrent duplicate deliveries are settled by the unique
        constraint on the payment reference.
        """

        existing = self.stores.orders.find_order_by_external_reference(session_id)
        if existing is None:
            payment = PaymentContext(
                method=PaymentMethod.CARD,
                payment_status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
                status="processing" if paid else "pending",
                external_payment_reference=session_id,
            )
            try:
                return self._create_order(submission_factory(), payment)
            except DuplicateExternalReferenceError:
                logger.info("Concurrent delivery already created the order", extra={"session_id": session_id})
                existing = self.stores.orders.find_order_by_external_reference(session_id)
                if existing is None:
                    raise

        if paid and not existing.is_payment_confirmed:
            return self._confirm(existing)
        return IntakeResult(order=existing, duplicate=True)

    def mark_checkout_unsuccessful(self, session_id: str, payment_status: PaymentStatus) -> Optional[Order]:
        """Flag a not-yet-paid checkout order as failed or cancelled; paid orders are left alone."""

        existing = self.stores.orders.find_order_by_external_reference(session_id)
        if existing is None or existing.is_payment_confirmed:
            return None
        return self.stores.orders.update_payment_status(existing.id, payment_status, status="cancelled")


__all__ = [
    "CheckoutResult",
    "IntakeResult",
    "MbwayRequest",
    "OrderIntakeService",
    "OrderSubmission",
    "PaymentContext",
    "normalize_mbway_phone",
]
