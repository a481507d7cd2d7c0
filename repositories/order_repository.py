"""
Order repository (persistence).

Provides *only* persistence operations for orders. Attribution is written as
part of the single insert and this module offers no way to change it later.

The `orders.external_payment_reference` column carries a UNIQUE constraint;
a violation is surfaced as DuplicateExternalReferenceError so callers can
tell "already processed" apart from a real storage failure.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.errors import DuplicateExternalReferenceError, OrderNotFoundError
from domain.order import LineItem, NewOrder, Order, PaymentMethod, PaymentStatus
from repositories._rows import (
    is_unique_violation,
    parse_optional_uuid,
    parse_utc_datetime,
    raise_for_error,
    rows_of,
    to_decimal,
    to_iso_utc,
)
from repositories.client import get_supabase

_ORDERS_TABLE: str = "orders"


def _row_to_order(row: Mapping[str, Any]) -> Order:
    """Convert a Supabase row into an Order."""

    return Order(
        id=UUID(str(row["id"])),
        order_number=row.get("order_number"),
        customer_email=str(row["customer_email"]),
        customer_name=str(row.get("customer_name") or ""),
        customer_phone=row.get("customer_phone"),
        shipping_address=row.get("shipping_address") or {},
        items=[LineItem.from_dict(item) for item in (row.get("items") or [])],
        subtotal=to_decimal(row["subtotal"]),
        shipping=to_decimal(row["shipping"]),
        total=to_decimal(row["total"]),
        payment_method=PaymentMethod(str(row["payment_method"])),
        payment_status=PaymentStatus(str(row["payment_status"])),
        status=str(row.get("status") or "pending"),
        created_at=parse_utc_datetime(row["created_at"]),
        consultant_id=parse_optional_uuid(row.get("consultant_id")),
        consultant_code=row.get("consultant_code"),
        external_payment_reference=row.get("external_payment_reference"),
    )


class SupabaseOrderRepository:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def insert_order(self, order: NewOrder) -> Order:
        """
        Insert an order, attribution included, in one write.

        Raises:
            DuplicateExternalReferenceError: the payment reference is already used
            RuntimeError: any other storage failure
        """

        order_id = uuid4()
        payload: dict[str, Any] = {
            "id": str(order_id),
            "order_number": f"FM-{order_id.hex[:8].upper()}",
            "customer_email": order.customer.email,
            "customer_name": order.customer.full_name,
            "customer_phone": order.customer.phone,
            "customer_nif": order.customer.nif,
            "shipping_address": order.customer.shipping_address(),
            "items": [item.to_dict() for item in order.items],
            "subtotal": str(order.totals.subtotal),
            "shipping": str(order.totals.shipping),
            "total": str(order.totals.total),
            "payment_method": order.payment_method.value,
            "payment_status": order.payment_status.value,
            "status": order.status,
            "consultant_id": str(order.consultant_id) if order.consultant_id else None,
            "consultant_code": order.consultant_code,
            "external_payment_reference": order.external_payment_reference,
            "created_at": to_iso_utc(order.created_at, name="created_at"),
        }

        try:
            response = self.client.table(_ORDERS_TABLE).insert(payload).execute()
        except APIError as e:
            if order.external_payment_reference and is_unique_violation(e):
                raise DuplicateExternalReferenceError(order.external_payment_reference) from e
            raise RuntimeError(f"Failed to insert order: {e}") from e
        raise_for_error(response, "insert order")

        rows = rows_of(response)
        if rows:
            return _row_to_order(rows[0])
        return _row_to_order(payload)

    def find_order_by_external_reference(self, reference: str) -> Optional[Order]:
        response = (
            self.client.table(_ORDERS_TABLE)
            .select("*")
            .eq("external_payment_reference", reference)
            .limit(1)
            .execute()
        )
        raise_for_error(response, "fetch order by payment reference")

        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_order(rows[0])

    def get_order_by_id(self, order_id: UUID) -> Optional[Order]:
        response = (
            self.client.table(_ORDERS_TABLE)
            .select("*")
            .eq("id", str(order_id))
            .limit(1)
            .execute()
        )
        raise_for_error(response, "fetch order")

        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_order(rows[0])

    def update_payment_status(
        self,
        order_id: UUID,
        payment_status: PaymentStatus,
        status: Optional[str] = None,
    ) -> Order:
        """Update payment (and optionally fulfilment) status; attribution columns are never sent."""

        payload: dict[str, Any] = {"payment_status": payment_status.value}
        if status is not None:
            payload["status"] = status

        response = (
            self.client.table(_ORDERS_TABLE)
            .update(payload)
            .eq("id", str(order_id))
            .execute()
        )
        raise_for_error(response, "update payment status")

        rows = rows_of(response)
        if not rows:
            raise OrderNotFoundError(str(order_id))
        return _row_to_order(rows[0])


__all__ = ["SupabaseOrderRepository"]
