"""
Hosted-checkout webhook reconciliation.

Handles gateway events delivered at least once:
- checkout.session.completed / checkout.session.async_payment_succeeded:
  create or confirm the order for the session, then its commission
- checkout.session.async_payment_failed: mark the pending order failed
- checkout.session.expired: mark the pending order cancelled
- anything else: acknowledged and ignored

A verified event that cannot become an order (no session id, no usable
customer email) is acknowledged as "rejected" and logged for reconciliation.

The signature is verified before the payload is read. Redeliveries of an
already processed event are reported as duplicates, not errors, so the
gateway stops retrying.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.errors import OrderValidationError, WebhookSignatureError
from domain.order import CustomerInfo, PaymentStatus
from domain.ports import CheckoutGateway
from services.order_intake import (
    METADATA_CONSULTANT_CODE,
    METADATA_CUSTOMER_INFO,
    OrderIntakeService,
    OrderSubmission,
)

logger = logging.getLogger(__name__)

PAID_SESSION_STATUSES = frozenset({"paid", "no_payment_required"})


@dataclass(frozen=True, slots=True)
class WebhookResult:
    """
    outcome: created | confirmed | duplicate | pending | failed | expired | ignored | rejected
    """

    received: bool
    event_type: str
    outcome: str
    order_id: Optional[UUID] = None
    commission_id: Optional[UUID] = None


def _session_id(session: Mapping[str, Any]) -> str:
    session_id = session.get("id")
    if not session_id:
        raise OrderValidationError("Checkout session has no id", field="id")
    return str(session_id)


def _customer_from_session(session: Mapping[str, Any]) -> CustomerInfo:
    """Customer data from our metadata, falling back to what the gateway collected."""

    metadata = session.get("metadata") or {}
    raw = metadata.get(METADATA_CUSTOMER_INFO)
    details = session.get("customer_details") or {}
    fallback_email = session.get("customer_email") or details.get("email") or ""

    if raw:
        try:
            data = dict(json.loads(raw))
            if not data.get("email"):
                data["email"] = fallback_email
            return CustomerInfo.from_dict(data)
        except (ValueError, TypeError, OrderValidationError) as e:
            logger.warning(f"Unusable customer metadata on session {session.get('id')}: {e}")

    name = (details.get("name") or "").strip()
    first, _, last = name.partition(" ")
    return CustomerInfo(first_name=first or fallback_email, last_name=last, email=fallback_email)


class PaymentWebhookService:
    def __init__(self, intake: OrderIntakeService, gateway: CheckoutGateway):
        self.intake = intake
        self.gateway = gateway

    def handle(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Verify and process one webhook delivery.

        Raises:
            WebhookSignatureError: verification failed; nothing was read
            RuntimeError: storage failure, so the gateway should retry
        """

        try:
            event = self.gateway.verify_webhook(payload, signature)
        except WebhookSignatureError as e:
            logger.warning(
                f"Webhook signature verification failed: {e}",
                extra={"security_event": "webhook_signature_invalid"},
            )
            raise

        event_type = str(event.get("type", ""))
        session = (event.get("data") or {}).get("object") or {}

        try:
            if event_type in ("checkout.session.completed", "checkout.session.async_payment_succeeded"):
                return self._handle_session_paid(event_type, session)
            if event_type == "checkout.session.async_payment_failed":
                return self._handle_session_unsuccessful(event_type, session, PaymentStatus.FAILED, "failed")
            if event_type == "checkout.session.expired":
                return self._handle_session_unsuccessful(event_type, session, PaymentStatus.CANCELLED, "expired")
        except OrderValidationError as e:
            # Acknowledged so the gateway stops redelivering it
            logger.error(
                f"Webhook event rejected: {e}",
                extra={
                    "event_type": event_type,
                    "session_id": session.get("id"),
                    "needs_reconciliation": True,
                },
            )
            return WebhookResult(received=True, event_type=event_type, outcome="rejected")

        logger.info(f"Unhandled webhook event: {event_type}")
        return WebhookResult(received=True, event_type=event_type, outcome="ignored")

    def _handle_session_paid(self, event_type: str, session: Mapping[str, Any]) -> WebhookResult:
        session_id = _session_id(session)
        paid = (
            event_type == "checkout.session.async_payment_succeeded"
            or session.get("payment_status") in PAID_SESSION_STATUSES
        )

        def build_submission() -> OrderSubmission:
            metadata = session.get("metadata") or {}
            return OrderSubmission(
                customer=_customer_from_session(session),
                items=self.gateway.list_line_items(session_id),
                consultant_code=metadata.get(METADATA_CONSULTANT_CODE) or None,
            )

        result = self.intake.record_checkout_payment(session_id, build_submission, paid=paid)

        if result.duplicate:
            outcome = "duplicate"
        elif not result.order.is_payment_confirmed:
            outcome = "pending"
        elif result.created:
            outcome = "created"
        else:
            outcome = "confirmed"

        logger.info(
            "Checkout webhook processed",
            extra={"session_id": session_id, "outcome": outcome, "order_id": str(result.order.id)},
        )
        return WebhookResult(
            received=True,
            event_type=event_type,
            outcome=outcome,
            order_id=result.order.id,
            commission_id=result.commission.id if result.commission else None,
        )

    def _handle_session_unsuccessful(
        self,
        event_type: str,
        session: Mapping[str, Any],
        payment_status: PaymentStatus,
        outcome: str,
    ) -> WebhookResult:
        order = self.intake.mark_checkout_unsuccessful(_session_id(session), payment_status)
        return WebhookResult(
            received=True,
            event_type=event_type,
            outcome=outcome if order is not None else "ignored",
            order_id=order.id if order else None,
        )


__all__ = ["WebhookResult", "PaymentWebhookService"]
