"""
Domain: Monthly consultant reports.

Summaries are computed on every run and never stored; commissions and
client links remain the source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Sequence
from uuid import UUID

from .client import ClientLink
from .commission import Commission

TOP_CLIENTS_LIMIT = 3


@dataclass(frozen=True, slots=True)
class TopClient:
    client_key: str
    customer_name: str
    total_spent: Decimal


@dataclass(frozen=True, slots=True)
class MonthlyReportSummary:
    consultant_id: UUID
    period_start: date
    period_end: date
    total_commissions: int
    total_earnings: Decimal
    new_clients: int
    top_clients: List[TopClient]
    commissions: List[Commission]

    @property
    def year(self) -> int:
        return self.period_start.year

    @property
    def month(self) -> int:
        return self.period_start.month


def rank_top_clients(
    commissions: Sequence[Commission],
    limit: int = TOP_CLIENTS_LIMIT,
) -> List[TopClient]:
    """
    Rank clients by summed order amount over non-cancelled commissions.

    Ties keep first-seen order (sorted() is stable).
    """

    totals: Dict[str, Decimal] = {}
    names: Dict[str, str] = {}
    for commission in commissions:
        if not commission.counts_towards_earnings:
            continue
        key = commission.client_key
        totals[key] = totals.get(key, Decimal("0")) + commission.order_amount
        names.setdefault(key, commission.customer_name or "")

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        TopClient(client_key=key, customer_name=names[key], total_spent=total)
        for key, total in ranked[:limit]
    ]


def build_monthly_summary(
    consultant_id: UUID,
    period_start: date,
    period_end: date,
    commissions: Sequence[Commission],
    new_clients: Sequence[ClientLink],
) -> MonthlyReportSummary:
    """
    Aggregate one consultant's month.

    total_commissions counts every commission regardless of status;
    total_earnings only sums the ones that are not cancelled.
    """

    total_earnings = sum(
        (c.commission_amount for c in commissions if c.counts_towards_earnings),
        Decimal("0.00"),
    )
    return MonthlyReportSummary(
        consultant_id=consultant_id,
        period_start=period_start,
        period_end=period_end,
        total_commissions=len(commissions),
        total_earnings=total_earnings,
        new_clients=len(new_clients),
        top_clients=rank_top_clients(commissions),
        commissions=list(commissions),
    )
