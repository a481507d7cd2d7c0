"""
Commissions API Endpoints.

Back-office commission views and batch status actions. All routes require
the admin bearer token.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_stores, require_admin_token
from api.models import (
    CommissionActionRequest,
    CommissionActionResponse,
    CommissionListResponse,
    CommissionResponse,
    CommissionSummaryModel,
)
from domain.commission import CommissionAction, CommissionStatus
from domain.errors import InvalidCommissionTransitionError
from domain.ports import CommissionFilters
from repositories.stores import Stores
from services.commission_service import CommissionSummary, apply_commission_action, get_commission_summary

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin_token)])


def _summary_model(summary: CommissionSummary) -> CommissionSummaryModel:
    return CommissionSummaryModel(
        total=summary.total,
        pending=summary.counts[CommissionStatus.PENDING.value],
        approved=summary.counts[CommissionStatus.APPROVED.value],
        paid=summary.counts[CommissionStatus.PAID.value],
        cancelled=summary.counts[CommissionStatus.CANCELLED.value],
        total_amount=summary.total_amount,
        pending_amount=summary.amounts[CommissionStatus.PENDING.value],
        approved_amount=summary.amounts[CommissionStatus.APPROVED.value],
        paid_amount=summary.amounts[CommissionStatus.PAID.value],
        cancelled_amount=summary.amounts[CommissionStatus.CANCELLED.value],
    )


@router.get(
    "/commissions",
    response_model=CommissionListResponse,
    summary="List Commissions",
    description="Paginated commissions with per-status counts and amounts over the whole filtered set."
)
def list_commissions(
    consultant_id: Optional[UUID] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
    status: Optional[CommissionStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    stores: Stores = Depends(get_stores),
):
    """
    **Example:** `GET /api/v1/commissions?consultant_id=...&month=1&year=2024&status=pending`
    """
    filters = CommissionFilters(
        consultant_id=consultant_id,
        reference_month=month,
        reference_year=year,
        status=status,
    )
    try:
        result = get_commission_summary(stores.commissions, filters, page=page, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch commissions: {str(e)}")

    return CommissionListResponse(
        data=[CommissionResponse.from_domain(c) for c in result.data],
        summary=_summary_model(result.summary),
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.post(
    "/commissions/actions",
    response_model=CommissionActionResponse,
    summary="Apply Commission Action",
    description="Approve, pay or cancel a batch of commissions. One invalid id rejects the whole batch."
)
def apply_action(request: CommissionActionRequest, stores: Stores = Depends(get_stores)):
    """
    **Allowed transitions:**
    - approve: pending → approved
    - pay: approved → paid
    - cancel: pending or approved → cancelled
    """
    try:
        updated = apply_commission_action(
            stores.commissions,
            request.commission_ids,
            CommissionAction(request.action),
            payment_method=request.payment_method,
            payment_reference=request.payment_reference,
            reason=request.reason,
        )
    except InvalidCommissionTransitionError as e:
        raise HTTPException(status_code=400, detail=e.details)
    except Exception as e:
        logger.error(f"Commission action {request.action} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update commissions: {str(e)}")

    return CommissionActionResponse(
        success=True,
        updated=len(updated),
        commissions=[CommissionResponse.from_domain(c) for c in updated],
    )
