"""
Orders API Endpoints.

Customer-facing order creation (bank transfer, MB Way, hosted checkout) and
back-office order retrieval and payment confirmation.

Every creation route is a thin adapter over OrderIntakeService: it maps the
request body plus the attribution cookie into an OrderSubmission and the
result back into a response.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response

from api.dependencies import get_app_settings, get_intake_service, get_stores, require_admin_token
from api.models import (
    CheckoutSessionResponse,
    MbwayPaymentRequest,
    MbwayPaymentResponse,
    OrderCreatedResponse,
    OrderRequest,
    OrderResponse,
    PaymentConfirmationResponse,
)
from config.settings import Settings
from domain.errors import OrderNotFoundError, OrderValidationError, PaymentGatewayError
from repositories.stores import Stores
from services.attribution_store import COOKIE_NAME, cookie_token_store
from services.order_intake import OrderIntakeService, OrderSubmission

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_submission(
    request: OrderRequest,
    response: Response,
    cookie_value: Optional[str],
    settings: Settings,
) -> OrderSubmission:
    """
    Referral code precedence: explicit body field, then the attribution cookie.

    An opt-out drops attribution for this order and clears the cookie.
    """
    store = cookie_token_store(
        {COOKIE_NAME: cookie_value} if cookie_value else {},
        response,
        ttl_days=settings.attribution_ttl_days,
        secure=settings.cookie_secure,
    )

    if request.consultant_opt_out:
        store.clear()
        code = None
    elif request.consultant_code:
        code = request.consultant_code
    else:
        token = store.read()
        code = token.code if token else None

    return OrderSubmission(
        customer=request.customer.to_domain(),
        items=[item.to_domain() for item in request.items],
        consultant_code=code,
    )


@router.post(
    "/orders",
    response_model=OrderCreatedResponse,
    summary="Submit Order",
    description="Create a bank-transfer order. Payment is confirmed later by the back office."
)
def submit_order(
    request: OrderRequest,
    response: Response,
    consultant_ref: Optional[str] = Cookie(None, alias=COOKIE_NAME),
    settings: Settings = Depends(get_app_settings),
    intake: OrderIntakeService = Depends(get_intake_service),
):
    """
    **Totals:** subtotal of all lines; shipping is free above the free-shipping
    threshold (50.00 by default), otherwise the flat fee (5.99).

    **Attribution:** `consultant_code` in the body, else the `consultant_ref`
    cookie. Unknown or inactive codes create an unattributed order.
    """
    try:
        submission = _build_submission(request, response, consultant_ref, settings)
        result = intake.submit_direct_order(submission)
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Order submission failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create order: {str(e)}")

    return OrderCreatedResponse(
        success=True,
        order_id=result.order.id,
        total=result.order.total,
        consultant_code=result.order.consultant_code,
    )


@router.post(
    "/payments/mbway",
    response_model=MbwayPaymentResponse,
    summary="Initiate MB Way Payment",
    description="Create a pending order and send an MB Way payment request to the customer's phone."
)
def initiate_mbway_payment(
    request: MbwayPaymentRequest,
    response: Response,
    consultant_ref: Optional[str] = Cookie(None, alias=COOKIE_NAME),
    settings: Settings = Depends(get_app_settings),
    intake: OrderIntakeService = Depends(get_intake_service),
):
    """`phone_number` must be a Portuguese mobile number (9XXXXXXXX, optionally +351)."""
    try:
        submission = _build_submission(request, response, consultant_ref, settings)
        mbway = intake.initiate_mbway_payment(submission, request.phone_number)
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"MB Way payment initiation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to initiate MB Way payment: {str(e)}")

    return MbwayPaymentResponse(
        success=True,
        order_id=mbway.order.id,
        total=mbway.order.total,
        consultant_code=mbway.order.consultant_code,
        reference=mbway.order.id,
        status=mbway.status,
        message=mbway.message,
    )


@router.post(
    "/checkout/session",
    response_model=CheckoutSessionResponse,
    summary="Create Checkout Session",
    description="Open a hosted card checkout session and record the pending order."
)
def create_checkout_session(
    request: OrderRequest,
    response: Response,
    consultant_ref: Optional[str] = Cookie(None, alias=COOKIE_NAME),
    settings: Settings = Depends(get_app_settings),
    intake: OrderIntakeService = Depends(get_intake_service),
):
    """
    The order is confirmed (and its commission created) by the
    `checkout.session.completed` webhook, not by the customer's redirect.
    """
    try:
        submission = _build_submission(request, response, consultant_ref, settings)
        checkout = intake.create_checkout_session(submission)
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {str(e)}")
    except Exception as e:
        logger.error(f"Checkout session creation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create checkout session: {str(e)}")

    return CheckoutSessionResponse(
        session_id=checkout.session.id,
        url=checkout.session.url,
        order_id=checkout.order.id,
    )


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
    description="Retrieve a stored order with its attribution snapshot.",
    dependencies=[Depends(require_admin_token)],
)
def get_order(order_id: UUID, stores: Stores = Depends(get_stores)):
    try:
        order = stores.orders.get_order_by_id(order_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch order: {str(e)}")

    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return OrderResponse.from_domain(order)


@router.post(
    "/orders/{order_id}/payment-confirmation",
    response_model=PaymentConfirmationResponse,
    summary="Confirm Order Payment",
    description="Mark a pending order as paid and create its commission if attributed.",
    dependencies=[Depends(require_admin_token)],
)
def confirm_order_payment(order_id: UUID, intake: OrderIntakeService = Depends(get_intake_service)):
    """Used for bank transfers and MB Way payments. Confirming a paid order is a no-op."""
    try:
        result = intake.confirm_order_payment(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    except Exception as e:
        logger.error(f"Payment confirmation failed: {e}", extra={"order_id": str(order_id)})
        raise HTTPException(status_code=500, detail=f"Failed to confirm payment: {str(e)}")

    return PaymentConfirmationResponse(
        order=OrderResponse.from_domain(result.order),
        commission_id=result.commission.id if result.commission else None,
        already_confirmed=result.duplicate,
    )
