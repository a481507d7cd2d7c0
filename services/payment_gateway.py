"""
Stripe hosted-checkout gateway.

Creates checkout sessions, lists a session's line items, and verifies
webhook signatures against the endpoint's signing secret. Amounts sent to
Stripe are integer cents.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

import stripe

from config.settings import Settings
from domain.errors import PaymentGatewayError, WebhookSignatureError
from domain.order import CustomerInfo, LineItem
from domain.ports import CheckoutSession

logger = logging.getLogger(__name__)

SHIPPING_LINE_NAME = "Envio"


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal(100)).quantize(Decimal("0.01"))


class StripeCheckoutGateway:
    def __init__(self, settings: Settings):
        self._settings = settings
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key

    def create_checkout_session(
        self,
        customer: CustomerInfo,
        items: Sequence[LineItem],
        shipping_fee: Decimal,
        metadata: Mapping[str, str],
    ) -> CheckoutSession:
        currency = self._settings.currency
        line_items: List[dict[str, Any]] = [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": item.name},
                    "unit_amount": to_cents(item.price),
                },
                "quantity": item.quantity,
            }
            for item in items
        ]
        if shipping_fee > 0:
            line_items.append(
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": SHIPPING_LINE_NAME},
                        "unit_amount": to_cents(shipping_fee),
                    },
                    "quantity": 1,
                }
            )

        base_url = self._settings.public_url
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                customer_email=customer.email,
                line_items=line_items,
                success_url=f"{base_url}/checkout/sucesso?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base_url}/checkout",
                metadata=dict(metadata),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session creation failed: {e}")
            raise PaymentGatewayError(str(e)) from e

        return CheckoutSession(id=session["id"], url=session.get("url"))

    def expire_checkout_session(self, session_id: str) -> None:
        try:
            stripe.checkout.Session.expire(session_id)
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e

    def list_line_items(self, session_id: str) -> List[LineItem]:
        try:
            result = stripe.checkout.Session.list_line_items(session_id, limit=100)
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e

        items: List[LineItem] = []
        for line in result["data"]:
            name = line.get("description") or ""
            if name == SHIPPING_LINE_NAME:
                continue
            items.append(
                LineItem(
                    name=name,
                    price=from_cents(int(line["price"]["unit_amount"])),
                    quantity=int(line["quantity"]),
                )
            )
        return items

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Mapping[str, Any]:
        """
        Verify the `Stripe-Signature` header and return the decoded event.

        Nothing in the payload is trusted or even parsed before this passes.
        """

        secret = self._settings.stripe_webhook_secret
        if not secret:
            raise WebhookSignatureError("Webhook secret not configured")
        if not signature:
            raise WebhookSignatureError("Missing signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        return json.loads(payload)


__all__ = ["StripeCheckoutGateway", "SHIPPING_LINE_NAME", "to_cents", "from_cents"]
