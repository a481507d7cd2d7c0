"""
Attribution API Endpoints.

Capture, read and clear the consultant referral token kept in the
`consultant_ref` cookie.
"""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response

from api.dependencies import get_app_settings
from api.models import AttributionCaptureRequest, AttributionTokenResponse
from config.settings import Settings
from domain.attribution import AttributionToken
from services.attribution_store import COOKIE_NAME, cookie_token_store

router = APIRouter()


def _token_response(token: Optional[AttributionToken]) -> AttributionTokenResponse:
    if token is None:
        return AttributionTokenResponse()
    return AttributionTokenResponse(code=token.code, issued_at=token.issued_at, source=token.source)


@router.post(
    "/attribution",
    response_model=AttributionTokenResponse,
    summary="Capture Referral",
    description="Persist a referral code from a landing URL or manual entry. Last referrer wins."
)
def capture_referral(
    request: AttributionCaptureRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
):
    """
    Store the referral code in the attribution cookie for the configured TTL.

    A `url` is checked for `?ref=CODE` first; `code` is used when the URL has
    none. A request carrying neither is rejected with 400.
    """
    store = cookie_token_store(
        None,
        response,
        ttl_days=settings.attribution_ttl_days,
        secure=settings.cookie_secure,
    )

    code = store.extract_code_from_url(request.url) if request.url else None
    source = request.source or ("url" if code else "manual")
    code = code or request.code

    try:
        token = store.persist(code or "", source=source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _token_response(token)


@router.get(
    "/attribution",
    response_model=AttributionTokenResponse,
    summary="Current Referral",
    description="Return the active referral token, or nulls if none or expired."
)
def read_referral(
    response: Response,
    consultant_ref: Optional[str] = Cookie(None, alias=COOKIE_NAME),
    settings: Settings = Depends(get_app_settings),
):
    store = cookie_token_store(
        {COOKIE_NAME: consultant_ref} if consultant_ref else {},
        response,
        ttl_days=settings.attribution_ttl_days,
        secure=settings.cookie_secure,
    )
    return _token_response(store.read())


@router.delete(
    "/attribution",
    response_model=AttributionTokenResponse,
    summary="Clear Referral",
    description="Remove the referral token (customer opted out of the consultant link)."
)
def clear_referral(response: Response, settings: Settings = Depends(get_app_settings)):
    store = cookie_token_store(None, response, secure=settings.cookie_secure)
    store.clear()
    return AttributionTokenResponse()
