"""
Notification sink.

Email dispatch is owned by another service; this core only hands it
consultant reports and new-commission notices. Delivery is fire-and-forget:
a failure comes back as a NotificationResult, never as an exception.
"""

from __future__ import annotations

import logging

from domain.commission import Commission
from domain.consultant import Consultant
from domain.ports import NotificationResult
from domain.report import MonthlyReportSummary

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Sink that records notifications in the application log."""

    def send_report(self, consultant: Consultant, summary: MonthlyReportSummary) -> NotificationResult:
        if not consultant.email:
            return NotificationResult(success=False, error="Consultant has no email address")

        logger.info(
            f"Monthly report for {consultant.code} ({summary.year}-{summary.month:02d})",
            extra={
                "consultant_id": str(consultant.id),
                "recipient": consultant.email,
                "total_commissions": summary.total_commissions,
                "total_earnings": str(summary.total_earnings),
                "new_clients": summary.new_clients,
            },
        )
        return NotificationResult(success=True)

    def notify_new_commission(self, consultant: Consultant, commission: Commission) -> NotificationResult:
        logger.info(
            f"New commission for {consultant.code}",
            extra={
                "consultant_id": str(consultant.id),
                "order_id": str(commission.order_id),
                "commission_amount": str(commission.commission_amount),
            },
        )
        return NotificationResult(success=True)


__all__ = ["LoggingNotificationSink"]
