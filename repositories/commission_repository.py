"""
Commission repository (persistence).

`consultant_commissions.order_id` is UNIQUE: the database, not the caller,
guarantees at most one commission per order. A violation is surfaced as
DuplicateCommissionError.

Monetary columns (order_amount, commission_rate, commission_amount) are only
ever written by `insert_commission`.
"""

from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.commission import Commission, CommissionStatus
from domain.errors import DuplicateCommissionError
from domain.ports import CommissionFilters
from repositories._rows import (
    day_bounds,
    is_unique_violation,
    parse_optional_datetime,
    parse_optional_uuid,
    parse_utc_datetime,
    raise_for_error,
    rows_of,
    to_decimal,
    to_iso_utc,
)
from repositories.client import get_supabase

_COMMISSIONS_TABLE: str = "consultant_commissions"


def _optional_iso(value, name: str) -> Optional[str]:
    return to_iso_utc(value, name=name) if value is not None else None


def _row_to_commission(row: Mapping[str, Any]) -> Commission:
    """Convert a Supabase row into a Commission."""

    return Commission(
        id=UUID(str(row["id"])),
        consultant_id=UUID(str(row["consultant_id"])),
        order_id=UUID(str(row["order_id"])),
        order_amount=to_decimal(row["order_amount"]),
        commission_rate=to_decimal(row["commission_rate"]),
        commission_amount=to_decimal(row["commission_amount"]),
        status=CommissionStatus(str(row["status"])),
        reference_month=int(row["reference_month"]),
        reference_year=int(row["reference_year"]),
        order_date=parse_utc_datetime(row["order_date"]),
        created_at=parse_utc_datetime(row["created_at"]),
        client_id=parse_optional_uuid(row.get("client_id")),
        customer_name=row.get("customer_name"),
        customer_email=row.get("customer_email"),
        approved_at=parse_optional_datetime(row.get("approved_at")),
        paid_at=parse_optional_datetime(row.get("paid_at")),
        cancelled_at=parse_optional_datetime(row.get("cancelled_at")),
        payment_method=row.get("payment_method"),
        payment_reference=row.get("payment_reference"),
        cancellation_reason=row.get("cancellation_reason"),
    )


class SupabaseCommissionRepository:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def insert_commission(self, commission: Commission) -> Commission:
        """
        Insert a new commission.

        Raises:
            DuplicateCommissionError: the order already has a commission
            RuntimeError: any other storage failure
        """

        payload: dict[str, Any] = {
            "id": str(commission.id),
            "consultant_id": str(commission.consultant_id),
            "order_id": str(commission.order_id),
            "client_id": str(commission.client_id) if commission.client_id else None,
            "customer_name": commission.customer_name,
            "customer_email": commission.customer_email,
            "order_amount": str(commission.order_amount),
            "commission_rate": str(commission.commission_rate),
            "commission_amount": str(commission.commission_amount),
            "status": commission.status.value,
            "reference_month": commission.reference_month,
            "reference_year": commission.reference_year,
            "order_date": to_iso_utc(commission.order_date, name="order_date"),
            "created_at": to_iso_utc(commission.created_at, name="created_at"),
        }

        try:
            response = self.client.table(_COMMISSIONS_TABLE).insert(payload).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise DuplicateCommissionError(commission.order_id) from e
            raise RuntimeError(f"Failed to insert commission: {e}") from e
        raise_for_error(response, "insert commission")

        return commission

    def find_commission_by_order_id(self, order_id: UUID) -> Optional[Commission]:
        response = (
            self.client.table(_COMMISSIONS_TABLE)
            .select("*")
            .eq("order_id", str(order_id))
            .limit(1)
            .execute()
        )
        raise_for_error(response, "fetch commission by order")

        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_commission(rows[0])

    def find_commissions_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[Commission]:
        lower, upper = day_bounds(start, end)
        response = (
            self.client.table(_COMMISSIONS_TABLE)
            .select("*")
            .eq("consultant_id", str(consultant_id))
            .gte("order_date", lower)
            .lt("order_date", upper)
            .order("order_date", desc=True)
            .execute()
        )
        raise_for_error(response, "list commissions for period")

        return [_row_to_commission(row) for row in rows_of(response)]

    def list_commissions(self, filters: CommissionFilters) -> List[Commission]:
        query = self.client.table(_COMMISSIONS_TABLE).select("*")

        if filters.consultant_id is not None:
            query = query.eq("consultant_id", str(filters.consultant_id))
        if filters.status is not None:
            query = query.eq("status", filters.status.value)
        if filters.reference_month is not None:
            query = query.eq("reference_month", filters.reference_month)
        if filters.reference_year is not None:
            query = query.eq("reference_year", filters.reference_year)

        response = query.order("created_at", desc=True).execute()
        raise_for_error(response, "list commissions")

        return [_row_to_commission(row) for row in rows_of(response)]

    def get_commissions_by_ids(self, commission_ids: Sequence[UUID]) -> List[Commission]:
        if not commission_ids:
            return []

        response = (
            self.client.table(_COMMISSIONS_TABLE)
            .select("*")
            .in_("id", [str(cid) for cid in commission_ids])
            .execute()
        )
        raise_for_error(response, "fetch commissions")

        return [_row_to_commission(row) for row in rows_of(response)]

    def update_commission(self, commission: Commission) -> Commission:
        payload: dict[str, Any] = {
            "status": commission.status.value,
            "approved_at": _optional_iso(commission.approved_at, "approved_at"),
            "paid_at": _optional_iso(commission.paid_at, "paid_at"),
            "cancelled_at": _optional_iso(commission.cancelled_at, "cancelled_at"),
            "payment_method": commission.payment_method,
            "payment_reference": commission.payment_reference,
            "cancellation_reason": commission.cancellation_reason,
        }

        response = (
            self.client.table(_COMMISSIONS_TABLE)
            .update(payload)
            .eq("id", str(commission.id))
            .execute()
        )
        raise_for_error(response, "update commission")

        return commission


__all__ = ["SupabaseCommissionRepository"]
