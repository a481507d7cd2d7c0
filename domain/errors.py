"""
Domain errors shared by repositories, services and the API layer.

Attribution misses are deliberately absent here: an unknown or inactive
referral code is never an error, it downgrades to an unattributed order.
"""

from __future__ import annotations

from typing import List, Optional


class OrderValidationError(Exception):
    """Raised when an order submission is malformed (empty cart, missing customer data)."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class OrderNotFoundError(Exception):
    """Raised when an operation targets an order id that does not exist."""


class DuplicateExternalReferenceError(Exception):
    """
    Raised by the order store when `external_payment_reference` is already taken.

    Surfaces the storage unique constraint; the webhook path treats it as an
    already-processed delivery.
    """

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"An order already exists for payment reference {reference!r}")


class DuplicateCommissionError(Exception):
    """Raised by the commission store when a commission already exists for the order."""

    def __init__(self, order_id: object):
        self.order_id = order_id
        super().__init__(f"A commission already exists for order {order_id}")


class WebhookSignatureError(Exception):
    """Raised when a payment webhook fails signature verification."""


class PaymentGatewayError(Exception):
    """Raised when the hosted payment gateway rejects a request."""


class InvalidCommissionTransitionError(Exception):
    """Raised when an administrative action is not allowed from the current status."""

    def __init__(self, details: List[str]):
        self.details = details
        super().__init__("Invalid commission states: " + "; ".join(details))


__all__ = [
    "OrderValidationError",
    "OrderNotFoundError",
    "DuplicateExternalReferenceError",
    "DuplicateCommissionError",
    "WebhookSignatureError",
    "PaymentGatewayError",
    "InvalidCommissionTransitionError",
]
