"""
Domain: Orders.

Contract excerpts implemented here:
- Totals follow one shared rule for every intake path:
  subtotal = sum(price * quantity); shipping = 0 if subtotal > threshold
  else a flat fee; total = subtotal + shipping.
- Attribution fields (consultant_id, consultant_code) are fixed when the
  order is created. After creation only payment_status and status move.
- external_payment_reference, when set, is unique across orders (enforced by
  the storage layer, not here).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID

from .errors import OrderValidationError
from .time import require_utc_timestamp

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half-up."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PaymentMethod(str, Enum):
    CARD = "card"
    MBWAY = "mbway"
    TRANSFER = "transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"
    FAILED = "failed"


# Statuses at or past payment confirmation
PAYMENT_CONFIRMED_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PROCESSING, PaymentStatus.SHIPPED}
)


@dataclass(frozen=True, slots=True)
class LineItem:
    """One cart line. `price` is the unit price."""

    name: str
    price: Decimal
    quantity: int
    product_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise OrderValidationError(f"quantity must be positive for {self.name!r}", field="items")
        if self.price < 0:
            raise OrderValidationError(f"price must not be negative for {self.name!r}", field="items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": str(self.price),
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        return cls(
            name=str(data.get("name", "")),
            price=Decimal(str(data["price"])),
            quantity=int(data["quantity"]),
            product_id=data.get("product_id"),
        )


@dataclass(frozen=True, slots=True)
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


def compute_order_totals(
    items: Sequence[LineItem],
    free_shipping_threshold: Decimal,
    flat_shipping_fee: Decimal,
) -> OrderTotals:
    """
    Apply the shared totals rule.

    Example:
        compute_order_totals([LineItem("Ring", Decimal("45.00"), 1)],
                             Decimal("50.00"), Decimal("5.99"))
        # OrderTotals(subtotal=45.00, shipping=5.99, total=50.99)
    """

    if not items:
        raise OrderValidationError("Cart is empty", field="items")

    subtotal = quantize_money(sum((item.line_total for item in items), Decimal("0")))
    shipping = Decimal("0.00") if subtotal > free_shipping_threshold else quantize_money(flat_shipping_fee)
    return OrderTotals(subtotal=subtotal, shipping=shipping, total=subtotal + shipping)


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    nif: Optional[str] = None
    address: Optional[str] = None
    address_complement: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.email or "@" not in self.email:
            raise OrderValidationError("A valid customer email is required", field="customer.email")
        if not self.first_name.strip():
            raise OrderValidationError("Customer first name is required", field="customer.first_name")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def shipping_address(self) -> dict[str, Optional[str]]:
        return {
            "address": self.address,
            "complement": self.address_complement,
            "city": self.city,
            "postal_code": self.postal_code,
        }

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "nif": self.nif,
            "address": self.address,
            "address_complement": self.address_complement,
            "city": self.city,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomerInfo":
        return cls(
            first_name=str(data.get("first_name") or ""),
            last_name=str(data.get("last_name") or ""),
            email=str(data.get("email") or ""),
            phone=data.get("phone"),
            nif=data.get("nif"),
            address=data.get("address"),
            address_complement=data.get("address_complement"),
            city=data.get("city"),
            postal_code=data.get("postal_code"),
        )


@dataclass(frozen=True, slots=True)
class NewOrder:
    """
    Everything needed to insert an order in a single write.

    Attribution is part of this payload so it can never be added by a
    second update.
    """

    customer: CustomerInfo
    items: List[LineItem]
    totals: OrderTotals
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: str
    created_at: datetime
    consultant_id: Optional[UUID] = None
    consultant_code: Optional[str] = None
    external_payment_reference: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if (self.consultant_id is None) != (self.consultant_code is None):
            raise ValueError("consultant_id and consultant_code must be set together")


@dataclass(frozen=True, slots=True)
class Order:
    """Persisted order."""

    id: UUID
    customer_email: str
    customer_name: str
    items: List[LineItem]
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: str
    created_at: datetime
    consultant_id: Optional[UUID] = None
    consultant_code: Optional[str] = None
    external_payment_reference: Optional[str] = None
    order_number: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.total < 0:
            raise ValueError("total must not be negative")

    @property
    def is_attributed(self) -> bool:
        return self.consultant_id is not None

    @property
    def is_payment_confirmed(self) -> bool:
        return self.payment_status in PAYMENT_CONFIRMED_STATUSES
