"""
Consultants API Endpoints.

Public lookup used by the storefront to show who referred the customer.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_stores
from api.models import ConsultantPublicResponse
from repositories.stores import Stores
from services.consultant_lookup import resolve_consultant

router = APIRouter()


@router.get(
    "/consultants/by-code/{code}",
    response_model=ConsultantPublicResponse,
    summary="Get Consultant By Code",
    description="Look up an active consultant by referral code (case-insensitive)."
)
def get_consultant_by_code(code: str, stores: Stores = Depends(get_stores)):
    """
    Returns 404 for unknown, inactive and suspended consultants alike, so a
    caller cannot tell them apart.
    """
    consultant = resolve_consultant(stores.consultants, code)
    if consultant is None:
        raise HTTPException(status_code=404, detail="Consultant not found")

    return ConsultantPublicResponse(
        id=consultant.id,
        code=consultant.code,
        full_name=consultant.full_name,
        email=consultant.email,
        phone=consultant.phone,
        commission_percentage=consultant.commission_percentage,
    )
