"""
Consultant repository (read-only).

Consultants are managed by the back office. This module only reads them for
attribution, commission rates and report recipients.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.attribution import canonicalize_code
from domain.consultant import Consultant, ConsultantStatus
from repositories._rows import raise_for_error, rows_of, to_decimal
from repositories.client import get_supabase

_CONSULTANTS_TABLE: str = "consultants"


def _row_to_consultant(row: Mapping[str, Any]) -> Consultant:
    """Convert a Supabase row into a Consultant."""

    return Consultant(
        id=UUID(str(row["id"])),
        code=str(row["code"]).upper(),
        status=ConsultantStatus(str(row["status"])),
        commission_percentage=to_decimal(row.get("commission_percentage") or 0),
        full_name=row.get("full_name"),
        email=row.get("email"),
        phone=row.get("phone"),
        monthly_report_enabled=bool(row.get("monthly_report_enabled", False)),
    )


class SupabaseConsultantRepository:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def find_active_by_code(self, code: str) -> Optional[Consultant]:
        """
        Active consultant for a referral code, or None.

        Codes are stored upper-case, so the lookup canonicalizes the input.
        Inactive and suspended consultants are filtered in the query itself.
        """

        canonical = canonicalize_code(code)
        if canonical is None:
            return None

        response = (
            self.client.table(_CONSULTANTS_TABLE)
            .select("*")
            .eq("code", canonical)
            .eq("status", ConsultantStatus.ACTIVE.value)
            .limit(1)
            .execute()
        )
        raise_for_error(response, "fetch consultant by code")

        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_consultant(rows[0])

    def get_by_id(self, consultant_id: UUID) -> Optional[Consultant]:
        response = (
            self.client.table(_CONSULTANTS_TABLE)
            .select("*")
            .eq("id", str(consultant_id))
            .limit(1)
            .execute()
        )
        raise_for_error(response, "fetch consultant")

        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_consultant(rows[0])

    def list_report_recipients(self) -> List[Consultant]:
        response = (
            self.client.table(_CONSULTANTS_TABLE)
            .select("*")
            .eq("status", ConsultantStatus.ACTIVE.value)
            .eq("monthly_report_enabled", True)
            .execute()
        )
        raise_for_error(response, "list report recipients")

        return [_row_to_consultant(row) for row in rows_of(response)]


__all__ = ["SupabaseConsultantRepository"]
