"""
Reports API Endpoints.

Monthly consultant report batch, called by the scheduler on the 1st of each
month with `Authorization: Bearer <CRON_SECRET>`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_notification_sink, get_stores, require_cron_secret
from api.models import ReportBatchResponse, ReportFailureModel
from domain.ports import NotificationSink
from repositories.stores import Stores
from services.monthly_report_service import run_monthly_report_batch

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/consultants/monthly-report",
    response_model=ReportBatchResponse,
    summary="Run Monthly Reports",
    description="Send every opted-in consultant their report for the previous (or given) month.",
    dependencies=[Depends(require_cron_secret)],
)
def run_monthly_reports(
    year: Optional[int] = Query(None, ge=2000),
    month: Optional[int] = Query(None, ge=1, le=12),
    stores: Stores = Depends(get_stores),
    notifications: NotificationSink = Depends(get_notification_sink),
):
    """
    Per-consultant failures are returned in `errors`; they never fail the
    request. `year` and `month` must be given together.
    """
    if (year is None) != (month is None):
        raise HTTPException(status_code=400, detail="year and month must be given together")

    try:
        result = run_monthly_report_batch(stores, notifications, year=year, month=month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Monthly report batch failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to run monthly reports: {str(e)}")

    return ReportBatchResponse(
        success=result.success,
        period_start=result.period_start,
        period_end=result.period_end,
        consultants_processed=result.consultants_processed,
        emails_sent=result.reports_sent,
        errors=[ReportFailureModel(consultant_id=f.consultant_id, error=f.error) for f in result.errors],
    )
