"""
Client repository for consultant-to-customer links.

Provides functions to query and create rows in `consultant_clients`, which is
UNIQUE on (consultant_id, customer_email).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.client import ClientLink
from repositories._rows import (
    day_bounds,
    is_unique_violation,
    parse_utc_datetime,
    raise_for_error,
    rows_of,
    to_iso_utc,
)
from repositories.client import get_supabase

_CONSULTANT_CLIENTS_TABLE: str = "consultant_clients"


def _row_to_link(row: Mapping[str, Any]) -> ClientLink:
    return ClientLink(
        id=UUID(str(row["id"])),
        consultant_id=UUID(str(row["consultant_id"])),
        customer_email=str(row["customer_email"]),
        customer_name=row.get("customer_name"),
        created_at=parse_utc_datetime(row["created_at"]),
    )


class SupabaseClientRepository:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def find_clients_by_consultant_and_date_range(
        self,
        consultant_id: UUID,
        start: date,
        end: date,
    ) -> List[ClientLink]:
        """
        Clients first linked to the consultant within [start, end] (inclusive days).

        Example:
            links = repo.find_clients_by_consultant_and_date_range(
                consultant_id, date(2024, 1, 1), date(2024, 1, 31)
            )
        """
        lower, upper = day_bounds(start, end)
        response = (
            self.client.table(_CONSULTANT_CLIENTS_TABLE)
            .select("*")
            .eq("consultant_id", str(consultant_id))
            .gte("created_at", lower)
            .lt("created_at", upper)
            .execute()
        )
        raise_for_error(response, "list consultant clients")

        return [_row_to_link(row) for row in rows_of(response)]

    def link_client(
        self,
        consultant_id: UUID,
        customer_email: str,
        customer_name: Optional[str],
        linked_at: datetime,
    ) -> bool:
        payload = {
            "id": str(uuid4()),
            "consultant_id": str(consultant_id),
            "customer_email": customer_email.lower(),
            "customer_name": customer_name,
            "created_at": to_iso_utc(linked_at, name="linked_at"),
        }

        try:
            response = self.client.table(_CONSULTANT_CLIENTS_TABLE).insert(payload).execute()
        except APIError as e:
            if is_unique_violation(e):
                return False
            raise RuntimeError(f"Failed to link client: {e}") from e
        raise_for_error(response, "link client")

        return True


__all__ = ["SupabaseClientRepository"]
