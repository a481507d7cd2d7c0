"""
Monthly consultant report batch.

Runs once per period (normally the 1st of the month, for the previous
calendar month). For every active consultant with monthly reports enabled:

1. fetch commissions whose order date falls in the month
2. total_earnings = sum of non-cancelled commission amounts;
   total_commissions = count of all fetched commissions
3. new_clients = clients first linked to the consultant in the month
4. top 3 clients by non-cancelled order amount
5. hand the summary to the notification sink

One consultant failing (query or dispatch) never stops the batch; failures
are collected into the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
from uuid import UUID

from domain.consultant import Consultant
from domain.ports import NotificationSink
from domain.report import MonthlyReportSummary, build_monthly_summary
from domain.time import month_range, previous_month_range, utc_now
from repositories.stores import Stores

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReportFailure:
    consultant_id: UUID
    error: str


@dataclass(frozen=True, slots=True)
class ReportBatchResult:
    period_start: date
    period_end: date
    consultants_processed: int = 0
    reports_sent: int = 0
    errors: List[ReportFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def summarize_consultant_month(
    stores: Stores,
    consultant: Consultant,
    period_start: date,
    period_end: date,
) -> MonthlyReportSummary:
    commissions = stores.commissions.find_commissions_by_consultant_and_date_range(
        consultant.id, period_start, period_end
    )
    new_clients = stores.clients.find_clients_by_consultant_and_date_range(
        consultant.id, period_start, period_end
    )
    return build_monthly_summary(consultant.id, period_start, period_end, commissions, new_clients)


def run_monthly_report_batch(
    stores: Stores,
    notifications: NotificationSink,
    year: Optional[int] = None,
    month: Optional[int] = None,
    today: Optional[date] = None,
) -> ReportBatchResult:
    """
    Build and dispatch every consultant's report for one month.

    Without an explicit year/month the period is the calendar month before
    `today` (UTC).

    Raises:
        ValueError: only one of year and month was given, or the month is invalid

    Example:
        result = run_monthly_report_batch(stores, LoggingNotificationSink(), year=2024, month=1)
        print(f"{result.reports_sent} reports sent, {len(result.errors)} failures")
    """

    if (year is None) != (month is None):
        raise ValueError("year and month must be given together")

    if year is not None and month is not None:
        period_start, period_end = month_range(year, month)
    else:
        period_start, period_end = previous_month_range(today or utc_now().date())

    consultants = stores.consultants.list_report_recipients()

    reports_sent = 0
    errors: List[ReportFailure] = []

    for consultant in consultants:
        try:
            summary = summarize_consultant_month(stores, consultant, period_start, period_end)
            result = notifications.send_report(consultant, summary)
        except Exception as e:
            logger.error(
                f"Monthly report failed for consultant {consultant.code}: {e}",
                extra={"consultant_id": str(consultant.id)},
            )
            errors.append(ReportFailure(consultant_id=consultant.id, error=str(e)))
            continue

        if result.success:
            reports_sent += 1
        else:
            errors.append(ReportFailure(consultant_id=consultant.id, error=result.error or "unknown error"))

    logger.info(
        f"Monthly report batch {period_start:%Y-%m}: {reports_sent}/{len(consultants)} sent",
        extra={"errors": len(errors)},
    )
    return ReportBatchResult(
        period_start=period_start,
        period_end=period_end,
        consultants_processed=len(consultants),
        reports_sent=reports_sent,
        errors=errors,
    )


__all__ = [
    "ReportBatchResult",
    "ReportFailure",
    "run_monthly_report_batch",
    "summarize_consultant_month",
]
