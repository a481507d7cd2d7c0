"""
Bundle of the persistence ports used by the services.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.ports import ClientStore, CommissionStore, ConsultantStore, OrderStore
from repositories.client_repository import SupabaseClientRepository
from repositories.commission_repository import SupabaseCommissionRepository
from repositories.consultant_repository import SupabaseConsultantRepository
from repositories.order_repository import SupabaseOrderRepository


@dataclass(frozen=True, slots=True)
class Stores:
    consultants: ConsultantStore
    orders: OrderStore
    commissions: CommissionStore
    clients: ClientStore


def supabase_stores(client: Optional[Client] = None) -> Stores:
    """Stores backed by Supabase tables (client resolved lazily when omitted)."""

    return Stores(
        consultants=SupabaseConsultantRepository(client),
        orders=SupabaseOrderRepository(client),
        commissions=SupabaseCommissionRepository(client),
        clients=SupabaseClientRepository(client),
    )


__all__ = ["Stores", "supabase_stores"]
